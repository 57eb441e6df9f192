from dependency_injector import containers, providers

from sitebrain.chatbots.chatbot_repo import ChatbotRepository
from sitebrain.crawler.crawler import HttpCrawler
from sitebrain.database.database import sessionmanager
from sitebrain.deletion_requests.deletion_request import DeletionRequestRepository
from sitebrain.embedding_models.openai_embeddings import OpenAIEmbeddingAdapter
from sitebrain.jobs.job_manager import JobManager
from sitebrain.knowledge.chunking import PageChunker
from sitebrain.knowledge.embedding_repo import EmbeddingRepository
from sitebrain.main.aiohttp_client import aiohttp_client
from sitebrain.main.config import get_settings
from sitebrain.notifications.email_service import EmailService
from sitebrain.observability.alerting import Alerting
from sitebrain.redis.connection import ConnectionProvider
from sitebrain.scrape_history.rescrape_service import RescrapeService
from sitebrain.scrape_history.scrape_history_repo import ScrapeHistoryRepository


class Container(containers.DeclarativeContainer):
    """Process-wide service graph.

    Built once at worker start-up and stored in the arq context; tests
    override individual providers with fakes.
    """

    settings = providers.Singleton(get_settings)
    sessionmanager = providers.Object(sessionmanager)
    http_client = providers.Object(aiohttp_client)

    # Infrastructure
    email_service = providers.Singleton(
        EmailService, client=http_client, settings=settings
    )
    alerting = providers.Singleton(
        Alerting, settings=settings, email_service=email_service
    )
    connection_provider = providers.Singleton(
        ConnectionProvider, settings=settings, alerting=alerting
    )
    job_manager = providers.Singleton(
        JobManager, connection_provider=connection_provider
    )

    # Collaborators
    crawler = providers.Singleton(HttpCrawler, client=http_client, settings=settings)
    embedding_adapter = providers.Singleton(OpenAIEmbeddingAdapter, settings=settings)
    page_chunker = providers.Singleton(
        PageChunker,
        chunk_size=settings.provided.chunk_size,
        chunk_overlap=settings.provided.chunk_overlap,
        min_length=settings.provided.min_chunk_length,
    )

    # Repositories
    chatbot_repo = providers.Factory(ChatbotRepository, sessionmanager=sessionmanager)
    scrape_history_repo = providers.Factory(
        ScrapeHistoryRepository, sessionmanager=sessionmanager
    )
    embedding_repo = providers.Factory(EmbeddingRepository, sessionmanager=sessionmanager)
    deletion_request_repo = providers.Factory(
        DeletionRequestRepository, sessionmanager=sessionmanager
    )

    # Services
    rescrape_service = providers.Factory(
        RescrapeService,
        chatbot_repo=chatbot_repo,
        scrape_history_repo=scrape_history_repo,
        job_manager=job_manager,
        settings=settings,
    )
