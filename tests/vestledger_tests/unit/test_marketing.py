"""
Tests for marketing metadata and logo handling.
"""

import base64

import pytest
from pydantic import ValidationError as SchemaValidationError

from vestledger.core.constants import LOGO_SIZE_CAP, PNG_HEADER
from vestledger.core.contracts import Cw20Ledger, Env
from vestledger.core.input_validation_schemas import InstantiateMsg, LogoInput, MarketingInput
from vestledger.core.ledger_exceptions import InvalidLogo, LogoTooBig, Unauthorized
from vestledger.core.state import Logo
from vestledger.core.storage import MemoryStore


@pytest.fixture
def marketed():
    ledger = Cw20Ledger(MemoryStore())
    msg = InstantiateMsg(
        name="Vest Token",
        symbol="VEST",
        decimals=6,
        marketing=MarketingInput(
            project="https://vest.example",
            description="Vesting token",
            marketing="Promoter",
            logo=LogoInput(url="https://vest.example/logo.png"),
        ),
    )
    ledger.instantiate(Env(sender="issuer", time=0), msg)
    return ledger


class TestMarketingInfo:
    """Marketing metadata"""

    def test_instantiated_info(self, marketed):
        info = marketed.query_marketing_info()
        assert info.project == "https://vest.example"
        assert info.marketing == "promoter"
        assert info.logo == "url:https://vest.example/logo.png"
        assert marketed.query_logo() == Logo(url="https://vest.example/logo.png")

    def test_no_marketing_by_default(self, ledger):
        assert ledger.query_marketing_info().marketing is None
        assert ledger.query_logo() is None
        with pytest.raises(Unauthorized):
            ledger.update_marketing(Env(sender="issuer", time=0), project="x")

    def test_update_by_marketing_address(self, marketed):
        marketed.update_marketing(
            Env(sender="promoter", time=0), description="", marketing_address="agency"
        )
        info = marketed.query_marketing_info()
        assert info.description is None
        assert info.project == "https://vest.example"
        assert info.marketing == "agency"

    def test_update_by_other_rejected(self, marketed):
        with pytest.raises(Unauthorized):
            marketed.update_marketing(Env(sender="issuer", time=0), project="hijack")
        assert marketed.query_marketing_info().project == "https://vest.example"


class TestLogo:
    """Logo validation"""

    def test_upload_png(self, marketed):
        png = PNG_HEADER + b"\x00" * 16
        response = marketed.upload_logo(Env(sender="promoter", time=0), Logo(png=png))
        assert response.get("logo") == "embedded"
        assert marketed.query_logo().png == png

    def test_png_header_checked(self, marketed):
        with pytest.raises(InvalidLogo):
            marketed.upload_logo(Env(sender="promoter", time=0), Logo(png=b"GIF89a"))

    def test_svg_preamble_checked(self, marketed):
        with pytest.raises(InvalidLogo):
            marketed.upload_logo(Env(sender="promoter", time=0), Logo(svg=b"not xml"))

    def test_size_cap(self, marketed):
        svg = b"<svg>" + b" " * LOGO_SIZE_CAP + b"</svg>"
        with pytest.raises(LogoTooBig):
            marketed.upload_logo(Env(sender="promoter", time=0), Logo(svg=svg))

    def test_upload_requires_marketing_address(self, marketed):
        with pytest.raises(Unauthorized):
            marketed.upload_logo(Env(sender="issuer", time=0), Logo(url="https://x.example"))

    def test_logo_input_needs_one_source(self):
        with pytest.raises(SchemaValidationError):
            LogoInput(url="https://x.example", svg="PHN2Zy8+")
        with pytest.raises(SchemaValidationError):
            LogoInput()

    def test_logo_input_decodes_base64(self):
        encoded = base64.b64encode(b"<svg/>").decode("ascii")
        assert LogoInput(svg=encoded).to_logo() == Logo(svg=b"<svg/>")
        with pytest.raises(InvalidLogo):
            LogoInput(png="***").to_logo()
