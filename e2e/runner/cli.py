import argparse


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="EMQX Exporter E2E Suite")
    parser.add_argument(
        "--source-dir",
        type=str,
        help="Exporter source directory to build (default: EXPORTER_SOURCE_DIR or repo root)",
    )
    parser.add_argument(
        "--certs-dir",
        type=str,
        help="Directory holding cacert.pem, client-cert.pem and client-key.pem",
    )
    parser.add_argument("--image", type=str, help="EMQX image to run as the dependency")
    parser.add_argument(
        "--scenario",
        action="append",
        dest="scenarios",
        metavar="NAME",
        help="Run only the named scenario (mqtt, ssl, ws, wss); repeatable",
    )
    parser.add_argument("--fail-fast", action="store_true", help="Stop on first scenario failure")
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable verbose output",
    )
    parser.add_argument(
        "--color",
        dest="color",
        action="store_const",
        const=True,
        help="Force color output",
    )
    parser.add_argument(
        "--no-color",
        dest="color",
        action="store_const",
        const=False,
        help="Disable color output",
    )
    parser.add_argument(
        "--generate-certs",
        type=str,
        metavar="DIR",
        help="Write a self-signed TLS test bundle into DIR and exit",
    )
    parser.set_defaults(color=None)
    return parser.parse_args(argv)
