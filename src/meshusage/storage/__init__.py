from .file_storage import ReportFileStorage

__all__ = ["ReportFileStorage"]
