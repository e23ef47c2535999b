from .runner import ReportProcessor, ProcessorRun

__all__ = ['ReportProcessor', 'ProcessorRun']
