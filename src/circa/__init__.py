"""circa — поиск похожих падений CI и рекомендации тестов для перезапуска."""

__version__ = "0.1.0"
