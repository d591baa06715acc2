# Overview: Business assistant sessions; builds the data snapshot and relays turns to the chat model.

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from datetime import datetime

from flask import current_app

from ..extensions import db
from ..models import FinancialTransaction, Organization, Product, Sale
from ..models.finance import TRANSACTION_EXPENSE
from ..time_utils import get_zone, to_local, to_utc_z, utcnow
from .chat_client import ROLE_MODEL, ROLE_USER, ChatClient, ChatClientError, get_chat_client

CONTEXT_SALES_LIMIT = 50
CONTEXT_EXPENSES_LIMIT = 50
TOP_VALUE_LIMIT = 5

SYSTEM_INSTRUCTION = """You are Stockpilot AI, a dedicated business assistant for this retail business.
Here is the real-time business data snapshot:
{context}

Your instructions:
1. Answer questions based on this specific data.
2. If the user asks for advice, provide actionable steps.
3. You can use your general knowledge for market trends or business strategies.
4. Be professional, encouraging, and concise.
5. If you need to search the web for external info, assume you have general knowledge up to your training cutoff, but prioritize the provided internal data."""

GREETING = (
    "Hello! I've analyzed your latest sales, inventory, and expenses. "
    "I'm ready to help you optimize your business. What would you like to know?"
)


class AssistantError(Exception):
    """The assistant could not produce a reply (502)."""


def build_business_context(
    *, org_id: int, now: datetime | None = None, include_financials: bool = True
) -> str:
    """
    Plain-text snapshot of the business for the chat model.

    Revenue and expenses cover the most recent 50 sales and 50 expense
    entries. Low-stock items are listed as "Name (stock)". Without
    include_financials the revenue, expense and profit lines are left out.
    """
    now = now or utcnow()
    currency = current_app.config.get("CURRENCY_SYMBOL", "")

    org = db.session.get(Organization, org_id)
    today = to_local(now, get_zone(org.timezone if org else None)).date()

    sales = (
        db.session.query(Sale)
        .filter(Sale.org_id == org_id)
        .order_by(Sale.created_at.desc(), Sale.id.desc())
        .limit(CONTEXT_SALES_LIMIT)
        .all()
    )
    expenses = (
        db.session.query(FinancialTransaction)
        .filter(
            FinancialTransaction.org_id == org_id,
            FinancialTransaction.type == TRANSACTION_EXPENSE,
        )
        .order_by(FinancialTransaction.created_at.desc(), FinancialTransaction.id.desc())
        .limit(CONTEXT_EXPENSES_LIMIT)
        .all()
    )
    products = (
        db.session.query(Product)
        .filter_by(org_id=org_id, is_active=True)
        .order_by(Product.name.asc())
        .all()
    )

    revenue = sum(s.total_amount for s in sales)
    expense_total = sum(e.amount for e in expenses)
    low_stock = [f"{p.name} ({p.stock})" for p in products if p.is_low_stock]
    top_value = sorted(products, key=lambda p: p.inventory_value, reverse=True)[:TOP_VALUE_LIMIT]

    lines = [f"Date: {today.isoformat()}"]
    if include_financials:
        lines += [
            f"Revenue: {currency}{revenue:.2f}",
            f"Expenses: {currency}{expense_total:.2f}",
            f"Net Profit: {currency}{revenue - expense_total:.2f}",
        ]
    lines += [
        f"Total Sales Count: {len(sales)}",
        f"Inventory Count: {len(products)} items",
        f"Low Stock: {', '.join(low_stock) if low_stock else 'None'}",
        f"Top Inventory Value: {', '.join(p.name for p in top_value) if top_value else 'None'}",
    ]
    return "\n".join(lines)


@dataclass
class ChatSession:
    """
    One conversation with the chat model.

    The transcript opens with the instruction + snapshot as a user turn and
    the fixed greeting as the model turn. Those two seed turns are not shown
    to the user.

    send() holds the session lock for the whole exchange, so concurrent
    messages for one profile are appended one complete turn pair at a time.
    """
    profile_id: int
    org_id: int
    context: str
    include_financials: bool = True
    history: list[dict] = field(default_factory=list)
    started_at: datetime = field(default_factory=utcnow)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    def __post_init__(self):
        if not self.history:
            self.history = [
                {"role": ROLE_USER, "text": SYSTEM_INSTRUCTION.format(context=self.context)},
                {"role": ROLE_MODEL, "text": GREETING},
            ]

    def send(self, message: str, client: ChatClient) -> str:
        message = (message or "").strip()
        if not message:
            raise ValueError("message is required")

        with self._lock:
            pending = self.history + [{"role": ROLE_USER, "text": message}]
            try:
                reply = client.generate(pending)
            except ChatClientError as exc:
                raise AssistantError(str(exc)) from exc

            # Only a successful exchange is kept in the transcript
            self.history = pending + [{"role": ROLE_MODEL, "text": reply}]
            return reply

    def transcript(self) -> list[dict]:
        """Visible messages: the greeting and every exchanged turn."""
        with self._lock:
            return list(self.history[1:])

    def to_dict(self) -> dict:
        return {
            "started_at": to_utc_z(self.started_at),
            "messages": self.transcript(),
        }


class SessionRegistry:
    """In-memory sessions keyed by profile. Lost on restart."""

    def __init__(self):
        self._lock = threading.Lock()
        self._sessions: dict[int, ChatSession] = {}

    def get(self, profile_id: int) -> ChatSession | None:
        with self._lock:
            return self._sessions.get(profile_id)

    def put(self, session: ChatSession) -> None:
        with self._lock:
            self._sessions[session.profile_id] = session

    def discard(self, profile_id: int) -> None:
        with self._lock:
            self._sessions.pop(profile_id, None)

    def clear(self) -> None:
        with self._lock:
            self._sessions.clear()


def get_registry() -> SessionRegistry:
    registry = current_app.extensions.get("stockpilot.assistant_sessions")
    if registry is None:
        registry = SessionRegistry()
        current_app.extensions["stockpilot.assistant_sessions"] = registry
    return registry


def start_session(*, profile_id: int, org_id: int, include_financials: bool = True) -> ChatSession:
    session = ChatSession(
        profile_id=profile_id,
        org_id=org_id,
        context=build_business_context(org_id=org_id, include_financials=include_financials),
        include_financials=include_financials,
    )
    get_registry().put(session)
    return session


def get_session(*, profile_id: int, org_id: int, include_financials: bool = True) -> ChatSession:
    """
    Existing session for the profile, started on first use.

    A session snapshotted under a different org or financial visibility is
    replaced.
    """
    session = get_registry().get(profile_id)
    if (
        session is None
        or session.org_id != org_id
        or session.include_financials != include_financials
    ):
        session = start_session(
            profile_id=profile_id, org_id=org_id, include_financials=include_financials
        )
    return session


def reset_session(*, profile_id: int, org_id: int, include_financials: bool = True) -> ChatSession:
    """Discard the transcript and start over with a freshly read snapshot."""
    get_registry().discard(profile_id)
    return start_session(profile_id=profile_id, org_id=org_id, include_financials=include_financials)


def send_message(*, profile_id: int, org_id: int, message: str, include_financials: bool = True) -> str:
    session = get_session(profile_id=profile_id, org_id=org_id, include_financials=include_financials)
    reply = session.send(message, get_chat_client())
    current_app.logger.info("Assistant reply for profile %s (%d turns)", profile_id, len(session.history))
    return reply
