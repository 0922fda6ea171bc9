import io

import pytest

from bulkload.logger import LogLevel, StructuredLogger


def _logger(level=LogLevel.INFO):
    out, err = io.StringIO(), io.StringIO()
    return StructuredLogger(min_level=level, show_timestamp=False, stdout=out, stderr=err), out, err


def test_details_are_formatted():
    logger, out, _ = _logger()

    logger.info("Loaded", rows=12000, strategy="chunked", seconds=1.23456)

    assert out.getvalue() == "[INFO] Loaded (rows=12,000, strategy=chunked, seconds=1.235)\n"


def test_warnings_and_errors_go_to_stderr():
    logger, out, err = _logger()

    logger.warning("careful")
    logger.error("failed")

    assert out.getvalue() == ""
    assert "[WARNING] careful" in err.getvalue()
    assert "[ERROR] failed" in err.getvalue()


def test_min_level_filters():
    logger, out, _ = _logger(LogLevel.WARNING)

    logger.debug("hidden")
    logger.info("hidden")
    logger.success("hidden")

    assert out.getvalue() == ""


def test_section():
    logger, out, _ = _logger()

    logger.section("BENCH")

    lines = out.getvalue().splitlines()
    assert lines[1] == "[INFO] BENCH"
    assert lines[0] == lines[2] == "[INFO] " + "=" * 60


@pytest.mark.parametrize("name, level", [("debug", LogLevel.DEBUG), (" Error ", LogLevel.ERROR)])
def test_level_from_name(name, level):
    assert LogLevel.from_name(name) is level


def test_level_from_unknown_name():
    with pytest.raises(ValueError):
        LogLevel.from_name("loud")
