import argparse
import sys
from typing import Dict, List, Optional

from .config import ClusterConfig, TransportConfig
from .errors import TransportError
from .facade import ClusterClient
from .log import PrintLogger


def _parse_params(pairs: List[str]) -> Dict[str, str]:
    params = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep:
            raise argparse.ArgumentTypeError(f"query parameter '{pair}' must look like key=value")
        params[key] = value
    return params


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="cluster-transport",
        description="Send one request to a cluster, failing over between nodes.",
    )
    source = parser.add_mutually_exclusive_group(required=True)
    source.add_argument("--config", help="JSON cluster description")
    source.add_argument("--host", action="append", help="node URL or host:port (repeatable)")
    parser.add_argument("method", help="HTTP method, e.g. GET")
    parser.add_argument("path", help="request path, e.g. /_cluster/health")
    parser.add_argument("-p", "--param", action="append", default=[], help="query parameter key=value")
    parser.add_argument("-d", "--data", help="request body")
    parser.add_argument("--timeout", type=float, help="per-request timeout in seconds")
    parser.add_argument("--max-retries", type=int, help="override the retry budget")
    parser.add_argument("-v", "--verbose", action="store_true", help="print transport debug lines")
    parser.add_argument("--trace", action="store_true", help="print curl-style request/response trace")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        params = _parse_params(args.param)
    except argparse.ArgumentTypeError as exc:
        parser.error(str(exc))

    if args.config:
        config = ClusterConfig(args.config).transport()
    else:
        config = TransportConfig(hosts=args.host)

    options = {}
    if args.timeout is not None:
        options["timeout"] = args.timeout
    if args.max_retries is not None:
        options["max_retries"] = args.max_retries

    logger = PrintLogger(level="debug" if args.verbose else "warning")
    trace = PrintLogger(level="debug") if args.trace else None

    with ClusterClient(config, logger=logger, trace_logger=trace) as client:
        try:
            response = client.execute(args.method, args.path, params=params, body=args.data, options=options)
        except TransportError as exc:
            print(f"Request failed: {exc}", file=sys.stderr)
            return 1

        print(f"Status: {response.status} (node {response.host}, {response.duration * 1000:.1f}ms)")
        if response.body:
            print(response.text)
        return 0 if response.status < 400 else 2


if __name__ == "__main__":
    sys.exit(main())
