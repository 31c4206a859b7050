"""
Wires the integration layer together.

build_services() returns the same kind of services dict the portal's
controllers receive: one registry, one cache, one job runner, and the
portal services on top, with the event handlers subscribed.

With a ValkeyClient, the cache and the job schedule are shared by every
process connected to it; without one, both stay process-local.
"""

import logging

from clients.valkey_client import ValkeyClient
from core.event_bus import EventBus
from core.handlers.job_failure_handler import handle_job_failed
from core.handlers.payment_submitted_handler import handle_payment_submitted
from core.services.customer_service import CustomerService
from core.services.invoice_service import InvoiceService
from core.services.payment_service import PaymentService
from erp.cache import MemoryCache, ReadThroughCache, ValkeyCache
from erp.config import ERPConfig
from erp.registry import ProviderRegistry
from jobs.dispatch import JobDispatcher
from jobs.queue import InMemoryJobQueue, JobQueue, ValkeyJobQueue
from jobs.runner import JobRunner
from jobs.tasks import build_job_handlers
from jobs.worker import JobWorker

logger = logging.getLogger(__name__)


def connect_valkey(url: str | None = None) -> ValkeyClient:
    """Connect to Valkey; the URL comes from Vault when not given."""
    if url is None:
        from clients.vault_client import get_valkey_url

        url = get_valkey_url()
    return ValkeyClient(url)


def build_services(
    config: ERPConfig | None = None,
    cache: ReadThroughCache | None = None,
    queue: JobQueue | None = None,
    event_bus: EventBus | None = None,
    registry: ProviderRegistry | None = None,
    valkey: ValkeyClient | None = None,
) -> dict:
    """
    Build the service graph.

    Args:
        config: ERP settings, read from the environment when omitted
        cache: Explicit cache backend (wins over `valkey`)
        queue: Explicit job queue (wins over `valkey`)
        event_bus: Defaults to a fresh EventBus
        registry: Defaults to a ProviderRegistry over `config`
        valkey: Shared store for cache and schedule when those aren't given

    Returns:
        Dict with keys registry, cache, event_bus, customer, invoice,
        payment, runner, dispatcher, worker
    """
    config = config or ERPConfig.from_env()
    if cache is None:
        cache = ValkeyCache(valkey) if valkey is not None else MemoryCache()
    if queue is None:
        queue = ValkeyJobQueue(valkey) if valkey is not None else InMemoryJobQueue()
    event_bus = event_bus or EventBus()
    registry = registry or ProviderRegistry(config)

    customer = CustomerService(registry, cache, config.cache_ttl_seconds)
    invoice = InvoiceService(registry, cache, config.cache_ttl_seconds)

    runner = JobRunner(
        queue,
        build_job_handlers(registry, customer, invoice, event_bus),
        event_bus,
    )
    dispatcher = JobDispatcher(runner)
    payment = PaymentService(registry, invoice, dispatcher)

    event_bus.subscribe("JobFailedPermanently", handle_job_failed())
    event_bus.subscribe("PaymentSubmitted", handle_payment_submitted())

    logger.info(
        f"ERP integration wired (default provider: {registry.default_provider.value}, "
        f"cache: {type(cache).__name__}, queue: {type(queue).__name__})"
    )
    return {
        "registry": registry,
        "cache": cache,
        "event_bus": event_bus,
        "customer": customer,
        "invoice": invoice,
        "payment": payment,
        "runner": runner,
        "dispatcher": dispatcher,
        "worker": JobWorker(runner),
    }
