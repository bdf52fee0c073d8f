#!/usr/bin/env python3
"""Send a test request to a running hooklog server"""

import argparse
import sys

import requests
from colorama import Fore, init as colorama_init

from .configure import ConfigError, load_config
from .console import ctext

DEFAULT_BODY = '{"event": "ping", "source": "hooklog-send"}'


def parse_header(raw):
    if ":" not in raw:
        raise argparse.ArgumentTypeError(f"Header must look like 'Name: value', got {raw!r}")
    name, value = raw.split(":", 1)
    return name.strip(), value.strip()


def send_request(url, body=b"", headers=None, method="POST", timeout=10):
    """Send one request; a repeated header name becomes one comma-joined field."""
    if isinstance(body, str):
        body = body.encode("utf-8")
    # requests keeps one value per name; the first spelling of a name wins
    grouped = {}
    for name, value in headers or []:
        grouped.setdefault(name.lower(), (name, []))[1].append(value)
    merged = {name: ", ".join(values) for name, values in grouped.values()}
    with requests.Session() as session:
        return session.request(method, url, data=body, headers=merged, timeout=timeout)


def default_url():
    try:
        config = load_config()
    except ConfigError:
        config = {"host": "localhost", "port": 7860}
    return f"http://{config['host']}:{config['port']}/"


def build_parser():
    parser = argparse.ArgumentParser(
        prog="hooklog-send",
        description="Send a test request to a hooklog server",
    )
    parser.add_argument("--url", default=None, help="target URL (default from config.json)")
    group = parser.add_mutually_exclusive_group()
    group.add_argument("--data", default=None, help="request body text")
    group.add_argument("--file", default=None, help="read the request body from a file")
    parser.add_argument("-H", "--header", dest="headers", action="append", type=parse_header,
                        default=[], help="extra header 'Name: value' (repeatable)")
    parser.add_argument("-X", "--method", default="POST", help="HTTP method (default POST)")
    parser.add_argument("--timeout", type=float, default=10, help="seconds to wait for a response")
    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)
    colorama_init()

    url = args.url or default_url()
    if args.file:
        try:
            with open(args.file, "rb") as f:
                body = f.read()
        except OSError as e:
            print(ctext(f"❌ Cannot read {args.file}: {e}", Fore.RED))
            return 1
    elif args.data is not None:
        body = args.data
    else:
        body = DEFAULT_BODY

    print(ctext(f"📤 {args.method.upper()} {url}", Fore.CYAN))
    try:
        response = send_request(url, body, args.headers, args.method.upper(), args.timeout)
    except requests.exceptions.RequestException as e:
        print(ctext(f"❌ Request failed: {e}", Fore.RED))
        return 1

    color = Fore.GREEN if response.ok else Fore.RED
    print(ctext(f"Status: {response.status_code} {response.reason}", color))
    print(f"Content-Type: {response.headers.get('Content-Type', '-')}")
    print(response.text)
    return 0 if 200 <= response.status_code < 300 else 1


if __name__ == "__main__":
    sys.exit(main())
