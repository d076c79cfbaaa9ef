import io
import logging
import os
import pathlib
import sys
from decimal import Decimal

import pytest


# Ensure repo root is on PYTHONPATH for direct package imports (e.g. `import pharmaledger`).
_REPO_ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(_REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(_REPO_ROOT))

from pharmaledger.registry.batch import CallContext, MintRequest  # noqa: E402
from pharmaledger.registry.gateway import LedgerFeeTransfer, StaticAuthorityGateway  # noqa: E402
from pharmaledger.registry.observability import ROOT_LOGGER_NAME  # noqa: E402
from pharmaledger.registry.registry import BatchRegistry  # noqa: E402
from pharmaledger.registry.state import RegistryState  # noqa: E402


MINTER = "ST1TEST"
AUTHORITY = "ST2TEST"
ZERO_DIGEST = bytes(32)


def _env_flag(name: str) -> bool:
    v = (os.environ.get(name) or '').strip().lower()
    return v in {'1', 'true', 'yes', 'y', 'on'}


def pytest_configure(config: pytest.Config) -> None:
    config.addinivalue_line(
        "markers",
        "slow: slow correctness tests (skipped unless PHARMALEDGER_RUN_SLOW=1)",
    )


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    run_slow = _env_flag('PHARMALEDGER_RUN_SLOW')

    for item in items:
        if 'slow' in item.keywords and not run_slow:
            item.add_marker(pytest.mark.skip(reason='slow tests skipped; set PHARMALEDGER_RUN_SLOW=1 to enable'))


def make_request(**overrides) -> MintRequest:
    """A mint request that passes every field guard."""
    fields = dict(
        external_code="BATCH001",
        expiration_height=1000,
        composition="Comp1",
        certificate_digest=ZERO_DIGEST,
        drug_type="Type1",
        quantity=500,
        dosage="Dosage1",
        storage_conditions="Store cool",
        packaging="Box",
        location="Loc1",
        currency="STX",
        batch_number=1,
    )
    fields.update(overrides)
    return MintRequest(**fields)


@pytest.fixture
def ctx() -> CallContext:
    return CallContext(caller=MINTER, height=0)


@pytest.fixture
def gateway() -> StaticAuthorityGateway:
    return StaticAuthorityGateway([MINTER])


@pytest.fixture
def fees() -> LedgerFeeTransfer:
    return LedgerFeeTransfer()


@pytest.fixture
def registry(gateway, fees) -> BatchRegistry:
    """A fresh registry with no authority configured."""
    return BatchRegistry(gateway, fees, check_invariants=True)


@pytest.fixture
def configured(registry, ctx) -> BatchRegistry:
    """A registry whose authority gateway is already set."""
    assert registry.set_authority_gateway(ctx, AUTHORITY).ok
    return registry


@pytest.fixture
def small_registry(gateway, fees, ctx) -> BatchRegistry:
    """A configured registry that can only ever hold one batch."""
    reg = BatchRegistry(gateway, fees, RegistryState(batch_capacity=1), check_invariants=True)
    assert reg.set_authority_gateway(ctx, AUTHORITY).ok
    return reg


@pytest.fixture
def default_fee() -> Decimal:
    return Decimal("500")


@pytest.fixture
def mint_request():
    """Factory for mint requests; keyword overrides replace single fields."""
    return make_request


@pytest.fixture
def log_stream():
    """Capture package log output; restore the package logger afterwards."""
    stream = io.StringIO()
    root = logging.getLogger(ROOT_LOGGER_NAME)
    saved_handlers, saved_level = list(root.handlers), root.level
    yield stream
    for handler in list(root.handlers):
        root.removeHandler(handler)
    for handler in saved_handlers:
        root.addHandler(handler)
    root.setLevel(saved_level)
