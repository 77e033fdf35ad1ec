"""
Application context.

One ``AssistantContext`` is built at startup and handed to whatever serves
requests (CLI, HTTP layer). It owns the accounts, the provider manager, the
LLM service, the analysis components and the store; there is no module-level
state.

Example:
    >>> context = AssistantContext.from_config(AssistantConfig.from_env())
    >>> context.add_google_account("work")
    >>> await context.initialize()
    >>> insights = await context.generate_insights()
"""

import asyncio
import logging
from typing import Any

import httpx

from inbox_agent.analysis import BriefingGenerator, CorrelationEngine, EmailAnalysisService, InsightsGenerator
from inbox_agent.config import AssistantConfig
from inbox_agent.exceptions import ConfigurationError, NotInitializedError
from inbox_agent.llm import LLMService
from inbox_agent.models import (
    AccountInfo,
    AuthResult,
    Briefing,
    EmailAnalysis,
    Insight,
    Message,
    PriorityLevel,
    ProviderType,
    RecordKey,
)
from inbox_agent.providers import AuthProvider, CredentialStore, FileCredentialStore, ProviderManager
from inbox_agent.providers.google import (
    GmailEmailProvider,
    GoogleApiClient,
    GoogleAuthProvider,
    GoogleCalendarProvider,
    GoogleDocsNotesProvider,
)
from inbox_agent.providers.http import RestClient
from inbox_agent.providers.microsoft import (
    GraphClient,
    MicrosoftAuthProvider,
    OneNoteProvider,
    OutlookCalendarProvider,
    OutlookEmailProvider,
)
from inbox_agent.storage import AssistantStore

logger = logging.getLogger(__name__)

ANALYSIS_BATCH_SIZE = 5

QUERY_SYSTEM_PROMPT = (
    "You are a helpful assistant for the user's email, calendar and notes. Answer concisely."
)
QUERY_FALLBACK = "Sorry, I couldn't process your request right now. Please try again later."


class AssistantContext:
    """Wires accounts, providers, analysis and storage together.

    Args:
        config: Assistant configuration
        llm: Override for the LLM service
        store: Override for the datastore
        credential_store: Override for token persistence
        manager: Override for the provider manager
        http_client: Shared httpx client for provider calls
    """

    def __init__(
        self,
        config: AssistantConfig,
        *,
        llm: LLMService | None = None,
        store: AssistantStore | None = None,
        credential_store: CredentialStore | None = None,
        manager: ProviderManager | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self.config = config
        self.manager = manager or ProviderManager()
        self.llm = llm or LLMService.from_config(config.llm)
        self.store = store or AssistantStore(config.resolved_database_url)
        self.credentials = credential_store or FileCredentialStore(config.credentials_dir)
        self.http_client = http_client

        self.analysis = EmailAnalysisService(self.llm, config.analysis)
        self.correlation = CorrelationEngine(self.manager)
        self.briefings = BriefingGenerator(self.manager, self.llm)
        self.insights = InsightsGenerator(self.manager, self.get_analysis)

        self._auth: dict[str, AuthProvider] = {}
        self._clients: dict[str, RestClient] = {}
        self._analysis_cache: dict[RecordKey, EmailAnalysis] = {}
        self._initialized = False

    @classmethod
    def from_config(cls, config: AssistantConfig) -> "AssistantContext":
        return cls(config)

    @property
    def initialized(self) -> bool:
        return self._initialized

    def _require_initialized(self) -> None:
        if not self._initialized:
            raise NotInitializedError("AssistantContext.initialize() has not been called")

    def _require_auth(self, account_id: str) -> AuthProvider:
        auth = self._auth.get(account_id)
        if auth is None:
            raise ConfigurationError(f"Unknown account: {account_id}")
        return auth

    # Accounts

    def add_account(self, auth: AuthProvider) -> AuthProvider:
        """Track an auth provider; its capabilities register once it is authenticated."""
        self._auth[auth.account_id] = auth
        self.manager.register_auth_provider(auth.account_id, auth)
        return auth

    def add_microsoft_account(self, account_id: str = "microsoft-default", **kwargs: Any) -> MicrosoftAuthProvider:
        auth = MicrosoftAuthProvider(
            self.config.microsoft, self.credentials, account_id, http_client=self.http_client, **kwargs
        )
        self.add_account(auth)
        return auth

    def add_google_account(self, account_id: str = "google-default") -> GoogleAuthProvider:
        auth = GoogleAuthProvider(self.config.google, self.credentials, account_id, http_client=self.http_client)
        self.add_account(auth)
        return auth

    async def initialize(self) -> None:
        """Open the store and restore every account with persisted credentials."""
        await self.store.initialize()
        for auth in self._auth.values():
            await auth.initialize()
            if auth.is_authenticated():
                await self._register_capabilities(auth)
        self._initialized = True
        logger.info(f"Assistant initialized with {len(self._clients)} authenticated account(s)")

    async def _register_capabilities(self, auth: AuthProvider) -> None:
        account = await auth.get_account_info()
        await self.store.save_account(account)

        if auth.provider_type is ProviderType.MICROSOFT:
            graph = GraphClient(auth, http_client=self.http_client)
            email = OutlookEmailProvider(graph, account, self.config.poll_interval_seconds)
            calendar = OutlookCalendarProvider(graph, account)
            notes = OneNoteProvider(graph, account)
            client: RestClient = graph
        else:
            google = GoogleApiClient(auth, http_client=self.http_client)
            email = GmailEmailProvider(google, account, self.config.poll_interval_seconds)
            calendar = GoogleCalendarProvider(google, account, self.config.calendar)
            notes = GoogleDocsNotesProvider(google, account)
            client = google

        email.subscribe_to_changes(self.process_new_email)
        self._clients[account.id] = client
        self.manager.register_email_provider(account.id, email)
        self.manager.register_calendar_provider(account.id, calendar)
        self.manager.register_notes_provider(account.id, notes)

    async def login(self, account_id: str) -> AuthResult:
        """Start login. Google accounts return a pending result with ``auth_url``."""
        auth = self._require_auth(account_id)
        result = await auth.login()
        if result.success:
            await self._register_capabilities(auth)
        return result

    async def complete_google_login(self, account_id: str, code: str) -> AuthResult:
        auth = self._require_auth(account_id)
        result = await auth.handle_auth_code(code)
        if result.success:
            await self._register_capabilities(auth)
        return result

    async def logout(self, account_id: str) -> None:
        auth = self._require_auth(account_id)
        email = self.manager.get_email_provider(account_id)
        if email is not None:
            await email.stop_monitoring()
        await auth.logout()
        self.manager.remove_account(account_id)
        self.manager.register_auth_provider(account_id, auth)
        client = self._clients.pop(account_id, None)
        if client is not None:
            await client.aclose()
        if self._initialized:
            await self.store.delete_account(account_id)

    async def get_accounts(self) -> list[AccountInfo]:
        return await self.manager.get_accounts()

    # Lifecycle

    async def start(self) -> None:
        """Start change monitoring on every connected mailbox."""
        self._require_initialized()
        await self.manager.start_all_monitoring()

    async def stop(self) -> None:
        await self.manager.stop_all_monitoring()

    async def close(self) -> None:
        """Stop monitoring, release HTTP connections and close the store."""
        await self.stop()
        for client in self._clients.values():
            await client.aclose()
        self._clients.clear()
        await self.store.close()

    # Analysis

    async def get_analysis(self, message: Message) -> EmailAnalysis | None:
        """Known analysis of ``message`` without calling the model."""
        cached = self._analysis_cache.get(message.key)
        if cached is not None:
            return cached
        stored = await self.store.get_analysis(message.key)
        if stored is not None:
            self._analysis_cache[message.key] = stored
        return stored

    async def analyze_email(self, message: Message, force: bool = False) -> EmailAnalysis:
        """Analyze a message and correlate it with notes.

        Results are cached per message key and persisted; ``force`` replaces
        an existing analysis.
        """
        self._require_initialized()
        if not force:
            existing = await self.get_analysis(message)
            if existing is not None:
                return existing

        analysis = await self.analysis.analyze_email(message)
        try:
            analysis.related_note_ids = await self.correlation.correlate_email_with_notes(
                message, analysis.entities
            )
        except Exception as e:
            logger.warning(f"Note correlation failed for {message.id}: {e}", extra={"email_id": message.id})

        self._analysis_cache[message.key] = analysis
        await self.store.save_analysis(message.key, analysis)
        return analysis

    async def process_new_email(self, message: Message) -> None:
        """Change callback: persist, analyze and flag a newly arrived message."""
        extra = {"email_id": message.id, "account_id": message.account_id}
        try:
            await self.store.save_message(message)
            analysis = await self.analyze_email(message)
        except Exception:
            logger.exception(f"Processing new email {message.id} failed", extra=extra)
            return

        if analysis.priority_level is PriorityLevel.HIGH:
            logger.info(
                f'High priority email from {message.sender.display_name}: "{message.subject}" '
                f"({analysis.priority_reason})",
                extra=extra,
            )

    async def get_priority_emails(self, count: int = 50) -> list[tuple[Message, EmailAnalysis]]:
        """High priority messages among the ``count`` most recent, newest first."""
        self._require_initialized()
        messages = await self.manager.get_all_recent_emails(count)
        results: list[tuple[Message, EmailAnalysis]] = []
        for start in range(0, len(messages), ANALYSIS_BATCH_SIZE):
            batch = messages[start : start + ANALYSIS_BATCH_SIZE]
            analyses = await asyncio.gather(*(self.analyze_email(m) for m in batch), return_exceptions=True)
            for message, analysis in zip(batch, analyses):
                if isinstance(analysis, Exception):
                    logger.warning(f"Analysis failed for {message.id}: {analysis}", extra={"email_id": message.id})
                elif isinstance(analysis, EmailAnalysis) and analysis.priority_level is PriorityLevel.HIGH:
                    results.append((message, analysis))
        return results

    async def generate_briefing(self, meeting_id: str, account_id: str | None = None) -> Briefing:
        self._require_initialized()
        meeting = await self.manager.get_meeting(meeting_id, account_id)
        return await self.briefings.generate_briefing(meeting)

    async def generate_insights(self) -> list[Insight]:
        self._require_initialized()
        return await self.insights.generate_insights()

    async def handle_user_query(self, query: str) -> str:
        try:
            return await self.llm.ask(query, system=QUERY_SYSTEM_PROMPT)
        except Exception as e:
            logger.error(f"User query failed: {e}")
            return QUERY_FALLBACK
