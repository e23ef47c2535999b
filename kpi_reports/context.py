from dataclasses import dataclass
from typing import Optional
from cachetools import TTLCache
from kpi_reports.clients.llm import CompletionProvider
from kpi_reports.config import Settings, get_settings
from kpi_reports.document_store import DocumentStore, InMemoryDocumentStore
from kpi_reports.job_store import ReportJobStore
from kpi_reports.services import ReportHistoryService, ReportRequestService, ReportStatusService
from kpi_reports.workflow.runner import ReportProcessor

@dataclass
class AppContext:
    """Everything a request handler or a processing pass needs, built once per process."""
    settings: Settings
    store: DocumentStore
    job_store: ReportJobStore
    provider: CompletionProvider
    processor: ReportProcessor
    requests: ReportRequestService
    status: ReportStatusService
    history: ReportHistoryService

def build_context(settings: Optional[Settings] = None, store: Optional[DocumentStore] = None,
                  provider: Optional[CompletionProvider] = None) -> AppContext:
    """Wire the pipeline; tests pass a fake store or provider."""
    settings = settings or get_settings()
    store = store or InMemoryDocumentStore()
    provider = provider or CompletionProvider(
        api_key=settings.OPENAI_API_KEY,
        model=settings.OPENAI_MODEL,
        temperature=settings.OPENAI_TEMPERATURE,
        timeout=settings.OPENAI_TIMEOUT,
    )
    job_store = ReportJobStore(store, collection=settings.REPORTS_COLLECTION,
                               max_retries=settings.DEFAULT_MAX_RETRIES)
    return AppContext(
        settings=settings,
        store=store,
        job_store=job_store,
        provider=provider,
        processor=ReportProcessor(job_store, provider, batch_size=settings.PROCESSOR_BATCH_SIZE),
        requests=ReportRequestService(job_store),
        status=ReportStatusService(
            job_store, TTLCache(maxsize=settings.STATUS_CACHE_SIZE, ttl=settings.STATUS_CACHE_TTL)
        ),
        history=ReportHistoryService(job_store),
    )
