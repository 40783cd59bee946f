"""
Command-line front end for the governance analytics engine.

Loads in-memory registries from a JSON state file, runs one query and prints
the result as JSON.
"""

import argparse
import json
import logging
import sys
from typing import Any, Dict, List, Optional

from .errors import GovLensError
from .governance import EngineConfig, GovernanceAnalyticsEngine, load_registries

logger = logging.getLogger(__name__)


def build_engine(args: argparse.Namespace) -> GovernanceAnalyticsEngine:
    token, proposals, timelock = load_registries(args.state)

    config_data: Dict[str, Any] = {}
    if args.config:
        with open(args.config, "r", encoding="utf-8") as handle:
            config_data = json.load(handle)
    config = EngineConfig.from_dict(config_data)
    if args.now is not None:
        now = args.now
        config.clock = lambda: now

    engine = GovernanceAnalyticsEngine(
        config=config,
        token_registry=token,
        proposal_registry=proposals,
        timelock_registry=timelock,
    )
    return engine


def _known_addresses(engine: GovernanceAnalyticsEngine) -> List[str]:
    token = engine.token_registry
    return sorted(set(token.balances) | set(token.delegates))


def _window(engine: GovernanceAnalyticsEngine, args: argparse.Namespace):
    if args.start is None or args.end is None:
        return engine.recent_window(args.size)
    return args.start, args.end


def _record_known_delegations(engine: GovernanceAnalyticsEngine) -> None:
    for address in _known_addresses(engine):
        delegate = engine.token_registry.get_delegate(address)
        if delegate is not None:
            engine.record_delegation(address, delegate)


def cmd_validate(engine, args) -> Dict[str, Any]:
    result = engine.validate_delegation(args.delegator, args.delegatee).to_dict()
    result["warning_level"] = engine.warning_level(args.delegator, args.delegatee)
    return result


def cmd_power(engine, args) -> Dict[str, Any]:
    result = {"address": args.address, "effective_power": engine.effective_power(args.address)}
    if args.subtree:
        result["subtree_power"] = engine.subtree_power(args.address)
    return result


def cmd_stats(engine, args) -> Dict[str, Any]:
    return engine.account_delegation_stats(args.address).to_dict()


def cmd_subtree(engine, args) -> Dict[str, Any]:
    return engine.full_delegator_subtree(args.root, args.depth).to_dict()


def cmd_loops(engine, args) -> Dict[str, Any]:
    loop = engine.detect_global_loops(args.addresses or _known_addresses(engine))
    return {"loop": loop.to_dict() if loop else None}


def cmd_concentration(engine, args) -> List[Dict[str, Any]]:
    _record_known_delegations(engine)
    return [share.to_dict() for share in engine.top_delegate_concentration(args.count)]


def cmd_proposals(engine, args) -> Dict[str, Any]:
    return engine.proposal_analytics(*_window(engine, args)).to_dict()


def cmd_voters(engine, args) -> Dict[str, Any]:
    return engine.voter_behavior(*_window(engine, args)).to_dict()


def cmd_participation(engine, args) -> Dict[str, Any]:
    result = engine.participation_metrics(*_window(engine, args)).to_dict()
    result["token"] = engine.token_metrics().to_dict()
    return result


def cmd_timelock(engine, args) -> Dict[str, Any]:
    return engine.timelock_analytics(*_window(engine, args)).to_dict()


def cmd_health(engine, args) -> Dict[str, Any]:
    _record_known_delegations(engine)
    return engine.health_score(*_window(engine, args)).to_dict()


def _add_window_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--start", type=int, help="First proposal id of the window")
    parser.add_argument("--end", type=int, help="Last proposal id of the window")
    parser.add_argument("--size", type=int, help="Recent window size when no range is given")


def create_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="govlens", description="Delegation integrity and governance analytics"
    )
    parser.add_argument("--state", required=True, help="JSON file with registry state")
    parser.add_argument("--config", help="JSON file with engine configuration")
    parser.add_argument("--now", type=float, help="Override the current time (unix seconds)")
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    validate = subparsers.add_parser("validate", help="Validate a proposed delegation")
    validate.add_argument("delegator")
    validate.add_argument(
        "delegatee", nargs="?", help="Delegate address; omit to validate self-delegation"
    )
    validate.set_defaults(handler=cmd_validate)

    power = subparsers.add_parser("power", help="Effective voting power of an address")
    power.add_argument("address")
    power.add_argument("--subtree", action="store_true", help="Also sum the delegator subtree")
    power.set_defaults(handler=cmd_power)

    stats = subparsers.add_parser("stats", help="Delegation stats of an address")
    stats.add_argument("address")
    stats.set_defaults(handler=cmd_stats)

    subtree = subparsers.add_parser("subtree", help="Delegators beneath an address")
    subtree.add_argument("root")
    subtree.add_argument("--depth", type=int, help="Maximum levels to walk")
    subtree.set_defaults(handler=cmd_subtree)

    loops = subparsers.add_parser("loops", help="Audit for delegation loops")
    loops.add_argument("addresses", nargs="*")
    loops.set_defaults(handler=cmd_loops)

    concentration = subparsers.add_parser("concentration", help="Top delegates by power")
    concentration.add_argument("--count", type=int, default=10)
    concentration.set_defaults(handler=cmd_concentration)

    for name, handler, description in (
        ("proposals", cmd_proposals, "Proposal analytics"),
        ("voters", cmd_voters, "Voter behaviour analytics"),
        ("participation", cmd_participation, "Participation and token metrics"),
        ("timelock", cmd_timelock, "Timelock analytics"),
        ("health", cmd_health, "Governance health score"),
    ):
        sub = subparsers.add_parser(name, help=description)
        _add_window_arguments(sub)
        sub.set_defaults(handler=handler)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = create_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    try:
        engine = build_engine(args)
        result = args.handler(engine, args)
    except GovLensError as e:
        logger.error(str(e))
        print(json.dumps({"error": e.to_dict()}, indent=2, default=str), file=sys.stderr)
        return 1
    except (OSError, ValueError) as e:
        logger.error(f"Could not load state: {e}")
        print(json.dumps({"error": {"message": str(e)}}, indent=2), file=sys.stderr)
        return 1

    print(json.dumps(result, indent=2, default=str))
    return 0


if __name__ == "__main__":
    sys.exit(main())
