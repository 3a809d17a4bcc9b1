from srtflow.models.job import Job

__all__ = ["Job"]
