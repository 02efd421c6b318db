"""Scripted bot flows.

A flow looks at one inbound message and returns the replies to send and an
optional mode change. Flows never talk to the transport or the store; the
inbound service applies the outcome.
"""

import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from inbox_api.config import settings
from inbox_api.logging_config import get_logger
from inbox_api.models import Conversation
from inbox_api.schemas.webhook import TwilioWebhookForm
from inbox_api.services.state_machine import ConversationMode
from inbox_api.services.tenant_service import TenantRecord

logger = get_logger("flow_service")


class FlowPolicy(str, Enum):
    WELCOME = "welcome"
    MENU_HANDOFF = "menu_handoff"
    CATALOG_MENU = "catalog_menu"


DEFAULT_POLICY = FlowPolicy.WELCOME

WELCOME_TEXT = (
    "Hola, mucho gusto. Gracias por escribirnos. \n"
    "Actualmente estamos trabajando en el canal de WhatsApp por lo que podemos demorarnos en contestar.\n"
    "También puedes escribirnos por instagram (@crunchypawsgt), facebook (Cruchy paws) o al WhatssApp +50258569667"
)
MAIN_MENU_TEXT = "¿Qué deseas hacer?\n1. Hacer pedido\n2. Hablar con una persona"
HANDOFF_TEXT = "Alguien se comunicará contigo en breve"
ORDER_CONFIRMATION_TEXT = (
    "Pronto una persona se comunicará contigo para confirmar tu pedido y darte más detalles, gracias."
)

MENU_ORDER = "1"
MENU_HUMAN = "2"


@dataclass(frozen=True)
class Product:
    key: str
    name: str
    options: tuple[str, ...]


_WEIGHT_OPTIONS = ("100g Q30.00", "200g Q50.00", "300g Q100.00", "400g Q150.00")

CATALOG: tuple[Product, ...] = (
    Product(
        "PATITAS",
        "Patitas de pollo",
        (
            "15 unidades Q35.00",
            "30 unidades Q62.00",
            "75 unidades Q150.00",
            "200 unidades Q310.00",
            "300 unidades Q450.00",
            "400 unidades Q575.00",
            "1000 unidades a granel Q1,375.00",
        ),
    ),
    Product("PULMON", "Pulmón de res", _WEIGHT_OPTIONS),
    Product("OREJAS", "Orejas de res", _WEIGHT_OPTIONS),
    Product("TRAQUEAS", "Tráqueas de res", _WEIGHT_OPTIONS),
    Product("BULLSTICK", "Bullstick", _WEIGHT_OPTIONS),
)


def _numbered(lines) -> str:
    return "\n".join(f"{i}. {line}" for i, line in enumerate(lines, start=1))


def product_menu_text() -> str:
    return "Selecciona un producto:\n" + _numbered(p.name for p in CATALOG)


def product_options_text(product: Product) -> str:
    return f"Seleccionaste {product.name}\n\n{_numbered(product.options)}"


def _pick(choice: str, items):
    """1-based numeric choice into items, or None."""
    if not choice.isdigit():
        return None
    index = int(choice) - 1
    if 0 <= index < len(items):
        return items[index]
    return None


@dataclass
class FlowOutcome:
    replies: list[str] = field(default_factory=list)
    mode: Optional[ConversationMode] = None

    @property
    def hands_off(self) -> bool:
        return self.mode == ConversationMode.HUMAN


class CatalogStep(str, Enum):
    MENU = "MENU"
    PRODUCTS = "PRODUCTS"
    OPTION = "OPTION"


@dataclass
class CatalogSession:
    step: CatalogStep = CatalogStep.MENU
    product: Optional[Product] = None


class FlowSessions:
    """In-memory per-phone state of the catalog flow. Not persisted."""

    def __init__(self):
        self._sessions: dict[tuple[int, str], CatalogSession] = {}
        self._lock = threading.Lock()

    def get(self, tenant_id: int, phone_number: str) -> Optional[CatalogSession]:
        with self._lock:
            return self._sessions.get((tenant_id, phone_number))

    def start(self, tenant_id: int, phone_number: str) -> CatalogSession:
        session = CatalogSession()
        with self._lock:
            self._sessions[(tenant_id, phone_number)] = session
        return session

    def discard(self, tenant_id: int, phone_number: str) -> None:
        with self._lock:
            self._sessions.pop((tenant_id, phone_number), None)

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)


class WelcomeFlow:
    def handle(self, message: TwilioWebhookForm, conversation: Conversation, tenant: TenantRecord) -> FlowOutcome:
        return FlowOutcome(replies=[WELCOME_TEXT])


class MenuHandoffFlow:
    def handle(self, message: TwilioWebhookForm, conversation: Conversation, tenant: TenantRecord) -> FlowOutcome:
        if message.text == MENU_HUMAN:
            return FlowOutcome(replies=[HANDOFF_TEXT], mode=ConversationMode.HUMAN)
        return FlowOutcome(replies=[MAIN_MENU_TEXT])


class CatalogMenuFlow:
    """Menu -> product list -> option, with a hand-off to a person at either end."""

    def __init__(self, sessions: FlowSessions):
        self.sessions = sessions

    def handle(self, message: TwilioWebhookForm, conversation: Conversation, tenant: TenantRecord) -> FlowOutcome:
        phone = conversation.phone_number
        choice = message.text
        session = self.sessions.get(tenant.id, phone)

        if session is None:
            self.sessions.start(tenant.id, phone)
            return FlowOutcome(replies=[MAIN_MENU_TEXT])

        if session.step == CatalogStep.MENU:
            if choice == MENU_ORDER:
                session.step = CatalogStep.PRODUCTS
                return FlowOutcome(replies=[product_menu_text()])
            if choice == MENU_HUMAN:
                self.sessions.discard(tenant.id, phone)
                return FlowOutcome(replies=[HANDOFF_TEXT], mode=ConversationMode.HUMAN)
            return FlowOutcome(replies=[MAIN_MENU_TEXT])

        if session.step == CatalogStep.PRODUCTS:
            product = _pick(choice, CATALOG)
            if product is None:
                return FlowOutcome(replies=[product_menu_text()])
            session.product = product
            session.step = CatalogStep.OPTION
            return FlowOutcome(replies=[product_options_text(product)])

        option = _pick(choice, session.product.options)
        if option is None:
            return FlowOutcome(replies=[product_options_text(session.product)])

        logger.info(
            "Catalog order placed",
            extra={"context": {"tenant": tenant.slug, "conversation_id": conversation.id, "product": session.product.key, "option": option}},
        )
        self.sessions.discard(tenant.id, phone)
        # A person confirms the order, so the bot steps aside
        return FlowOutcome(replies=[ORDER_CONFIRMATION_TEXT], mode=ConversationMode.HUMAN)


def parse_policy(value: Optional[str]) -> Optional[FlowPolicy]:
    if not value:
        return None
    try:
        return FlowPolicy(value.strip().lower())
    except ValueError:
        return None


def select_policy(slug: str, policies: Optional[dict[str, str]] = None) -> FlowPolicy:
    """Flow policy configured for a tenant slug, or the default."""
    configured = settings.tenant_flow_policies if policies is None else policies
    raw = configured.get(slug)
    policy = parse_policy(raw)
    if raw and policy is None:
        logger.warning(f"Unknown flow policy '{raw}' for tenant {slug}, using {DEFAULT_POLICY.value}")
    return policy or DEFAULT_POLICY


def get_flow(policy: FlowPolicy, sessions: FlowSessions):
    if policy == FlowPolicy.MENU_HANDOFF:
        return MenuHandoffFlow()
    if policy == FlowPolicy.CATALOG_MENU:
        return CatalogMenuFlow(sessions)
    return WelcomeFlow()
