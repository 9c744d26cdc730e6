#!/usr/bin/env python3
"""
Inheritable Command Line Interface

Usage:
    inheritable header -b <bundle>
    inheritable verify -b <bundle> [--oracle <file>] [--recent <file> --height <n>]
    inheritable set-config <account> --inheritor <address> --delay <seconds> --authority
    inheritable record -b <bundle>
    inheritable claim -b <bundle>
    inheritable reset <account> --authority
    inheritable status <account>
    inheritable check

A bundle is an eth_getProof account result with the RLP header of the same
block added under "headerRlp". Trusted block hashes come from JSON snapshots:

    {"block_hashes": {"19000000": "0x...", ...}}
"""

import argparse
import json
import logging
import sys
from typing import Optional

from .config import DB_PATH, LOG_FILE, LOG_JSON, LOG_LEVEL, ORACLE_PATH, RECENT_BLOCK_WINDOW
from .errors import InheritableError

logger = logging.getLogger(__name__)


def load_json(path: str) -> dict:
    """Load JSON from file."""
    with open(path, 'r') as f:
        return json.load(f)


def print_json(data: dict):
    print(json.dumps(data, indent=2, default=str))


def load_bundle(path: str):
    from .models import ProofBundle
    return ProofBundle.model_validate(load_json(path))


def build_verifier(args):
    """Verifier over the recent snapshot (if given) and the oracle snapshot."""
    from pathlib import Path

    from .block_hashes import JsonFileHashOracle, WindowedBlockHashes
    from .models import OracleSnapshot
    from .state_proof import StateProofVerifier

    recent = None
    if args.recent:
        if args.height is None:
            raise ValueError("--recent requires --height")
        snapshot = OracleSnapshot.model_validate(load_json(args.recent))
        recent = WindowedBlockHashes(args.height, snapshot.block_hashes, window=args.window)

    oracle = None
    if args.oracle and Path(args.oracle).exists():
        oracle = JsonFileHashOracle(args.oracle)
    elif args.oracle and args.oracle != ORACLE_PATH:
        raise ValueError(f"oracle snapshot not found: {args.oracle}")

    return StateProofVerifier(recent=recent, oracle=oracle)


def open_account(args, account):
    from .inheritance import InheritableAccount, InheritanceStateMachine
    from .store import SqliteStateStore

    machine = InheritanceStateMachine(build_verifier(args))
    return InheritableAccount(account, machine, SqliteStateStore(args.db))


def observation_dict(observation) -> dict:
    return {
        "nonce": observation.nonce,
        "timestamp": observation.timestamp,
        "block_number": observation.block_number,
        "state_root": "0x" + observation.state_root.hex(),
    }


def cmd_header(args):
    """Decode a header and print the fields the verifier consumes."""
    from .state_proof import extract_header_fields

    bundle = load_bundle(args.bundle)
    header = extract_header_fields(bundle.header_rlp)
    print_json({
        "hash": "0x" + header.hash.hex(),
        "number": header.number,
        "timestamp": header.timestamp,
        "state_root": "0x" + header.state_root.hex(),
        "parent_hash": "0x" + header.parent_hash.hex(),
        "beneficiary": "0x" + header.beneficiary.hex(),
        "field_count": header.field_count,
    })
    return 0


def cmd_verify(args):
    """Verify a proof bundle and print the proven account record."""
    bundle = load_bundle(args.bundle)
    verifier = build_verifier(args)

    header = verifier.verify_header(bundle.header_rlp)
    record = verifier.verify_account(header.state_root, bundle.address, bundle.account_proof)

    result = {
        "block_number": header.number,
        "timestamp": header.timestamp,
        "account": record.to_dict(),
    }
    mismatches = bundle.check_claims(record)
    if mismatches:
        result["claim_mismatches"] = mismatches
    print_json(result)

    if mismatches:
        print(f"\n✗ Bundle claims disagree with the proof: {', '.join(mismatches)}", file=sys.stderr)
        return 1
    print(f"\n✓ Account proven at block {header.number}", file=sys.stderr)
    return 0


def cmd_set_config(args):
    account = open_account(args, args.account)
    config = account.set_config(args.inheritor, args.delay, caller_is_authority=args.authority)
    print_json({"account": account.account, "inheritor": config.inheritor, "delay": config.delay})
    return 0


def cmd_record(args):
    bundle = load_bundle(args.bundle)
    account = open_account(args, bundle.address)
    observation = account.record(bundle.header_rlp, bundle.account_proof)
    print_json({"account": account.account, "recorded": observation_dict(observation)})
    return 0


def cmd_claim(args):
    bundle = load_bundle(args.bundle)
    account = open_account(args, bundle.address)
    observation = account.claim(bundle.header_rlp, bundle.account_proof)
    inheritor, _ = account.get_config()
    print_json({
        "account": account.account,
        "inheritor": inheritor,
        "claimed": observation_dict(observation),
    })
    print(f"\n✓ Inheritance claimed for {inheritor}", file=sys.stderr)
    return 0


def cmd_reset(args):
    account = open_account(args, args.account)
    account.reset_claim(caller_is_authority=args.authority)
    print_json(account.state().to_dict())
    return 0


def cmd_status(args):
    from .store import SqliteStateStore

    print_json(SqliteStateStore(args.db).load(args.account).to_dict())
    return 0


def cmd_check(args):
    """Run the configuration checks and report each one."""
    from .config import ENV, validate_config

    checks = validate_config()
    print_json({"env": ENV, "checks": checks})

    failed = [name for name, ok in checks.items() if not ok]
    if failed:
        print(f"\n✗ Configuration checks failed: {', '.join(failed)}", file=sys.stderr)
        return 1
    print("\n✓ Configuration OK", file=sys.stderr)
    return 0


COMMANDS = {
    "header": cmd_header,
    "verify": cmd_verify,
    "set-config": cmd_set_config,
    "record": cmd_record,
    "claim": cmd_claim,
    "reset": cmd_reset,
    "status": cmd_status,
    "check": cmd_check,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="inheritable",
        description="Inheritable account CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  inheritable header -b bundle.json
  inheritable verify -b bundle.json --oracle trust/block_hashes.json
  inheritable set-config 0xAccount --inheritor 0xHeir --delay 86400 --authority
  inheritable record -b bundle_at_checkpoint.json
  inheritable claim -b bundle_after_delay.json
  inheritable status 0xAccount
  inheritable check
        """
    )
    parser.add_argument("--db", default=DB_PATH, help="SQLite state database")
    parser.add_argument("--oracle", default=ORACLE_PATH, help="Historical block hash snapshot JSON")
    parser.add_argument("--recent", help="Recent block hash snapshot JSON")
    parser.add_argument("--height", type=int, help="Current chain height for --recent")
    parser.add_argument("--window", type=int, default=RECENT_BLOCK_WINDOW,
                        help="Recent block hash window")
    parser.add_argument("--log-level", default=LOG_LEVEL, help="Log level")

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # header
    header_parser = subparsers.add_parser("header", help="Decode a block header")
    header_parser.add_argument("-b", "--bundle", required=True, help="Proof bundle JSON file")

    # verify
    verify_parser = subparsers.add_parser("verify", help="Verify an account proof bundle")
    verify_parser.add_argument("-b", "--bundle", required=True, help="Proof bundle JSON file")

    # set-config
    config_parser = subparsers.add_parser("set-config", help="Set inheritor and delay")
    config_parser.add_argument("account", help="Governed account address")
    config_parser.add_argument("-i", "--inheritor", default="", help="Inheritor address (empty keeps current)")
    config_parser.add_argument("-d", "--delay", type=int, default=0, help="Delay in seconds (0 keeps current)")
    config_parser.add_argument("--authority", action="store_true", help="Caller is the account's authority")

    # record
    record_parser = subparsers.add_parser("record", help="Record a nonce checkpoint")
    record_parser.add_argument("-b", "--bundle", required=True, help="Proof bundle JSON file")

    # claim
    claim_parser = subparsers.add_parser("claim", help="Claim the inheritance")
    claim_parser.add_argument("-b", "--bundle", required=True, help="Proof bundle JSON file")

    # reset
    reset_parser = subparsers.add_parser("reset", help="Reset a claim")
    reset_parser.add_argument("account", help="Governed account address")
    reset_parser.add_argument("--authority", action="store_true", help="Caller is the account's authority")

    # status
    status_parser = subparsers.add_parser("status", help="Show account state")
    status_parser.add_argument("account", help="Governed account address")

    # check
    subparsers.add_parser("check", help="Validate configuration")

    return parser


def main(argv: Optional[list] = None) -> int:
    from .config import is_debug
    from .logging_config import configure_logging, get_request_id, set_request_id

    parser = build_parser()
    args = parser.parse_args(argv)

    command = COMMANDS.get(args.command)
    if command is None:
        parser.print_help()
        return 2

    level = "DEBUG" if is_debug() else args.log_level
    configure_logging(level, json_format=LOG_JSON, log_file=LOG_FILE or None)
    set_request_id()

    try:
        return command(args)
    except InheritableError as e:
        print(json.dumps({"error": e.to_dict(), "request_id": get_request_id()}, indent=2), file=sys.stderr)
        return 1
    except (OSError, ValueError) as e:
        logger.debug("invalid input", exc_info=True)
        print(f"✗ {e}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    sys.exit(main())
