# main.py
import argparse
import sys

import yaml

from logger import log, redirect


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ocne-wizard",
        description="Collect and validate the settings for an OCNE cluster on OCI.",
    )
    parser.add_argument("--catalog", required=True,
                        help="YAML file answering OCI metadata lookups")
    parser.add_argument("--output", help="where the finished cluster config is written")
    parser.add_argument("--edit", metavar="CONFIG",
                        help="open an existing cluster config (JSON) for editing")
    parser.add_argument("--credential", help="cloud credential id to preselect")
    parser.add_argument("--messages", help="YAML file overriding message texts")
    parser.add_argument("--strict-decode", action="store_true",
                        help="refuse to open a config with unreadable node pools or manifests")
    parser.add_argument("--log-file", help="write the debug log here instead of /var/log")
    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)
    if args.log_file:
        redirect(args.log_file)

    from cloud.provider import CatalogMetadataProvider
    from cluster.synthesis import ConfigDecodeError, DecodePolicy
    from messages import Catalog, DEFAULT_CATALOG
    from state import Step, WizardMode, WizardOutcome
    from wizard.backend import CONFIG_PATH, JsonFileBackend, load_config
    from wizard.machine import Wizard

    try:
        provider = CatalogMetadataProvider.from_file(args.catalog)
        catalog = Catalog.from_file(args.messages) if args.messages else DEFAULT_CATALOG
        config = load_config(args.edit) if args.edit else None
    except (OSError, ValueError, yaml.YAMLError) as e:
        print(f"ERROR: {e}", file=sys.stderr)
        sys.exit(1)

    try:
        wizard = Wizard.start(
            provider,
            JsonFileBackend(args.output or CONFIG_PATH),
            config=config,
            mode=WizardMode.EDIT if config else WizardMode.NEW,
            credential_token=args.credential,
            start_step=Step.CREDENTIALS,
            decode_policy=DecodePolicy.STRICT if args.strict_decode else DecodePolicy.SKIP,
            catalog=catalog,
        )
    except ConfigDecodeError as e:
        log.error("Refusing to edit %s: %s", args.edit, e)
        print(f"ERROR: {args.edit}: {e}", file=sys.stderr)
        sys.exit(1)

    from app import ClusterWizard
    ClusterWizard(wizard).run()
    sys.exit(0 if wizard.session.outcome is WizardOutcome.SUBMITTED else 1)

if __name__ == "__main__":
    main()
