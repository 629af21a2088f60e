import json
import logging

import pytest
import structlog

from omnisign.core.monitoring import CompletionMonitor
from omnisign.logging_config import quote_context, setup_logging


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)
    structlog.contextvars.clear_contextvars()


def read_records(capsys) -> list:
    lines = capsys.readouterr().out.strip().splitlines()
    return [json.loads(line) for line in lines if line.startswith("{")]


def test_json_output_at_info(restore_root_logger, capsys):
    setup_logging("INFO")

    logging.getLogger("omnisign.core.monitoring").info("Quote %s status: %s", "0xquote", "PENDING")

    record = read_records(capsys)[-1]
    assert record["event"] == "Quote 0xquote status: PENDING"
    assert record["level"] == "info"
    assert record["logger"] == "omnisign.core.monitoring"


def test_debug_level_and_quiet_http_loggers(restore_root_logger):
    setup_logging("debug")

    assert logging.getLogger().level == logging.DEBUG
    assert logging.getLogger("httpx").level == logging.WARNING


def test_console_format_at_info(restore_root_logger, capsys):
    setup_logging("INFO", log_format="console")

    logging.getLogger("omnisign").info("Signing 2 origin operation(s)")

    out = capsys.readouterr().out
    assert "Signing 2 origin operation(s)" in out
    assert not out.lstrip().startswith("{")


def test_quote_context_binds_quote_and_operation(restore_root_logger, capsys):
    setup_logging("INFO", log_format="json")
    log = logging.getLogger("omnisign.core.signing.orchestrator")

    with quote_context("0xquote"):
        with quote_context(operation_index=1):
            log.info("inside operation")
        log.info("inside quote")
    log.info("outside")

    inner, quote_only, outside = read_records(capsys)[-3:]
    assert inner["quote_id"] == "0xquote"
    assert inner["operation_index"] == 1
    assert quote_only["quote_id"] == "0xquote"
    assert "operation_index" not in quote_only
    assert "quote_id" not in outside


def test_key_material_is_redacted(restore_root_logger, capsys):
    setup_logging("INFO", log_format="json")

    with quote_context("0xquote", api_key="secret-key"):
        logging.getLogger("omnisign").info("client ready")
    structlog.stdlib.get_logger("omnisign").info("loaded signer", private_key="0x" + "11" * 32)

    bound, native = read_records(capsys)[-2:]
    assert bound["api_key"] == "[redacted]"
    assert native["private_key"] == "[redacted]"


@pytest.mark.asyncio
async def test_monitor_records_carry_quote_id(restore_root_logger, capsys):
    setup_logging("INFO", log_format="json")
    statuses = iter(["PENDING", "COMPLETED"])

    class Source:
        async def fetch_execution_status(self, quote_id):
            return {"quoteId": quote_id, "status": next(statuses)}

    async def no_sleep(_seconds: float) -> None:
        return None

    await CompletionMonitor(Source(), "0xmonitored", interval_s=1.0, timeout_s=10.0, sleep=no_sleep).run()

    records = [r for r in read_records(capsys) if r["logger"] == "omnisign.core.monitoring"]
    assert records
    assert {r["quote_id"] for r in records} == {"0xmonitored"}
