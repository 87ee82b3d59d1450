import structlog

from log_config import use_stdlib_default


def test_default_logging_keeps_stdout_clean(capsys):
    structlog.reset_defaults()
    try:
        use_stdlib_default()
        log = structlog.get_logger("contrib_stats.storage")
        log.debug("events.inserted", requested=3, inserted=3)
        log.warning("stats.lookup_failed", slot='commits', user='alice')
        assert capsys.readouterr().out == ''
    finally:
        structlog.reset_defaults()
        use_stdlib_default()


def test_existing_configuration_is_kept():
    structlog.reset_defaults()
    try:
        structlog.configure(cache_logger_on_first_use=False, processors=[structlog.processors.JSONRenderer()])
        use_stdlib_default()
        assert isinstance(structlog.get_config()['processors'][0], structlog.processors.JSONRenderer)
    finally:
        structlog.reset_defaults()
        use_stdlib_default()
