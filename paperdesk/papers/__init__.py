from paperdesk.papers.service import PaperService

__all__ = ["PaperService"]
