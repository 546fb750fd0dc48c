"""
Marketing metadata and logo of the token.

Only the current marketing address may change either. Embedded logos are
checked for size and a plausible svg/png shape before they are stored.
"""

from __future__ import annotations

import logging
from typing import Optional

from vestledger.core.constants import LOGO_SIZE_CAP, PNG_HEADER
from vestledger.core.contracts.context import Env, Response
from vestledger.core.input_validation_schemas import MarketingInput
from vestledger.core.ledger_exceptions import InvalidLogo, LogoTooBig, Unauthorized
from vestledger.core.state import LOGO, MARKETING_INFO, Logo, MarketingInfo, normalize_address
from vestledger.core.storage import KeyValueStore

logger = logging.getLogger(__name__)


def validate_logo(logo: Logo) -> None:
    if not logo.is_embedded:
        return
    data = logo.svg if logo.svg is not None else logo.png
    if data is None:
        raise InvalidLogo("Embedded logo has no content")
    if len(data) > LOGO_SIZE_CAP:
        raise LogoTooBig(
            f"Logo binary data exceeds {LOGO_SIZE_CAP} bytes",
            details={"size": len(data), "limit": LOGO_SIZE_CAP},
        )
    if logo.png is not None and not data.startswith(PNG_HEADER):
        raise InvalidLogo("Invalid png header")
    if logo.svg is not None and not data.lstrip().startswith(b"<"):
        raise InvalidLogo("Invalid xml preamble for SVG")


def _logo_reference(logo: Logo) -> str:
    return "embedded" if logo.is_embedded else f"url:{logo.url}"


def _none_if_empty(value: str) -> Optional[str]:
    return value.strip() or None


def instantiate_marketing(
    store: KeyValueStore, marketing: Optional[MarketingInput]
) -> Optional[MarketingInfo]:
    """Store initial marketing info and logo; nothing is stored when absent."""
    if marketing is None:
        return None
    info = MarketingInfo(
        project=marketing.project,
        description=marketing.description,
        marketing=(
            normalize_address(marketing.marketing, "marketing") if marketing.marketing else None
        ),
    )
    if marketing.logo is not None:
        logo = marketing.logo.to_logo()
        validate_logo(logo)
        LOGO.save(store, logo)
        info.logo = _logo_reference(logo)
    MARKETING_INFO.save(store, info)
    return info


def _require_marketing(store: KeyValueStore, env: Env) -> MarketingInfo:
    info = MARKETING_INFO.may_load(store)
    if info is None or info.marketing is None:
        raise Unauthorized("Marketing info is not updatable")
    if normalize_address(env.sender, "sender") != info.marketing:
        raise Unauthorized(
            "Caller is not the marketing address", details={"sender": env.sender}
        )
    return info


def update_marketing(
    store: KeyValueStore,
    env: Env,
    project: Optional[str] = None,
    description: Optional[str] = None,
    marketing: Optional[str] = None,
) -> Response:
    """
    Update marketing fields.

    None leaves a field unchanged; an empty string clears it.
    """
    info = _require_marketing(store, env)
    if project is not None:
        info.project = _none_if_empty(project)
    if description is not None:
        info.description = _none_if_empty(description)
    if marketing is not None:
        info.marketing = (
            normalize_address(marketing, "marketing") if marketing.strip() else None
        )
    MARKETING_INFO.save(store, info)
    logger.info(
        "Marketing info updated",
        extra={"event": "cw20.update_marketing", "sender": env.sender[:10]},
    )
    return Response("update_marketing")


def upload_logo(store: KeyValueStore, env: Env, logo: Logo) -> Response:
    validate_logo(logo)
    info = _require_marketing(store, env)
    LOGO.save(store, logo)
    info.logo = _logo_reference(logo)
    MARKETING_INFO.save(store, info)
    logger.info(
        "Logo uploaded",
        extra={"event": "cw20.upload_logo", "embedded": logo.is_embedded},
    )
    return Response("upload_logo", {"logo": info.logo})
