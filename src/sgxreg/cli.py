from __future__ import annotations

import argparse
import json
import sys
from typing import Optional, Sequence

import uvicorn

from .app import create_app
from .config import load_config
from .controller.checker import DefaultRegistrationChecker
from .controller.service import RegistrationService
from .errors import ConfigurationError
from .intel.client import IntelServiceClient
from .obs.prom import PrometheusStatusSink
from .platform.provider import load_provider_factory
from .utils.logging import get_logger


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Register the SGX platform with Intel and keep its PCK retrievable")
    parser.add_argument("--config", dest="config", help="YAML config file (default: $CC_IPR_CONFIG_FILE)")
    parser.add_argument("--provider", dest="provider", help="Platform provider factory as module:attribute")
    sub = parser.add_subparsers(dest="command")
    sub.add_parser("run", help="Serve /metrics and run the registration loop (default)")
    sub.add_parser("check", help="Run a single registration check and print the outcome")
    args = parser.parse_args(argv if argv is not None else sys.argv[1:])

    log = get_logger()
    try:
        cfg = load_config(path=args.config)
        provider_factory = load_provider_factory(args.provider or cfg.platform_provider)
        client = IntelServiceClient(cfg)
    except ConfigurationError as e:
        log.error("configuration error: %s", e)
        return 2

    sink = PrometheusStatusSink()
    with client:
        checker = DefaultRegistrationChecker(client, provider_factory)
        service = RegistrationService(checker, sink, cfg.registration_interval_sec)
        if args.command == "check":
            outcome = service.check_registration_status()
            print(json.dumps(outcome.as_dict(), indent=2))
            return 0 if outcome.is_success else 1
        app = create_app(sink, service)
        uvicorn.run(app, host="0.0.0.0", port=cfg.service_port, log_level="warning")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
