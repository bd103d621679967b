"""
autonome CLI - inspect and drive an autonomy core from the shell.

Usage:
    autonome status [--json]
    autonome ask DOMAIN QUERY [--json]
    autonome decide [--urgency X] [--complexity X] [--opportunity X] [--json]
    autonome outcome DECISION_ID (--success | --failure)
    autonome run [--duration SECONDS]
"""

import argparse
import json
import logging
import sys
import time
from typing import List, Optional

from autonome.config import Settings, get_settings
from autonome.core import AutonomyCore, validate_core_id
from autonome.logging_config import setup_autonome_logging
from autonome.protocols import AutonomeError, ProviderError
from autonome.providers import auto_configure_provider

logger = logging.getLogger(__name__)


def cmd_status(args, core: AutonomyCore):
    """Show core status."""
    status = core.get_status()
    if args.json:
        print(json.dumps(status, indent=2, default=str))
        return

    print(f"Autonomy Status for {status['core_id']}")
    print("=" * 40)
    print(f"Local autonomy:   {status['local_autonomy']:.1%}")
    print(f"Cloud dependency: {status['cloud_dependency']:.1%}")
    print(f"Learning rate:    {status['learning_rate']:.4f}")
    print(f"Autonomy score:   {status['autonomy_score']:.3f}")
    print(f"Memories:         {status['memories']}")
    print(f"Attempts:         {status['learning_attempts']}")
    mastered = status["mastered_domain_names"]
    print(f"Mastered domains: {len(mastered)}" + (f" ({', '.join(mastered)})" if mastered else ""))
    c = status["consciousness"]
    print(f"Reflection depth: {c['reflection_depth']:.3f}")
    print(f"Awareness level:  {c['awareness_level']:.3f}")
    m = status["metrics_7d"]
    print(
        f"Last 7 days:      {m['total_interactions']} interactions, "
        f"{m['success_rate']:.0%} success, {m['local_interactions']} local"
    )


def cmd_ask(args, core: AutonomyCore):
    """Route a query through the hybrid dispatcher."""
    result = core.process_query(args.domain, args.query)
    if args.json:
        payload = {
            "interaction_id": result.interaction_id,
            "type": result.type.value,
            "confidence": result.confidence,
            "learning_gained": result.learning_gained,
            "autonomy_used": result.autonomy_used,
            "success": result.success,
            "mastery_level": result.mastery_level,
            "content": result.content,
        }
        print(json.dumps(payload, indent=2))
        return

    print(result.content)
    print()
    print(
        f"[{result.type.value}] confidence={result.confidence:.2f} "
        f"autonomy={result.autonomy_used:.2f} mastery={result.mastery_level:.3f}"
    )


def cmd_decide(args, core: AutonomyCore):
    """Make one explicit autonomous decision."""
    context = {
        key: getattr(args, key)
        for key in ("urgency", "complexity", "opportunity")
        if getattr(args, key) is not None
    }
    decision = core.make_decision(context)
    if args.json:
        print(
            json.dumps(
                {
                    "id": decision.id,
                    "decision": decision.decision.value,
                    "strategy": decision.strategy.value,
                    "confidence": decision.confidence,
                    "reasoning": decision.reasoning,
                    "predicted_outcome": decision.predicted_outcome,
                },
                indent=2,
            )
        )
        return
    print(f"✓ Decision: {decision.decision.value} (strategy={decision.strategy.value})")
    print(f"  Confidence: {decision.confidence:.2f}")
    print(f"  Reasoning:  {decision.reasoning}")
    print(f"  ID: {decision.id[:8]}...")


def cmd_outcome(args, core: AutonomyCore):
    """Record whether a decision turned out well."""
    if core.record_decision_outcome(args.decision_id, args.success):
        print(f"✓ Outcome recorded for {args.decision_id[:8]}...")
    else:
        print(f"No pending decision {args.decision_id}")


def cmd_run(args, core: AutonomyCore):
    """Run the autonomous loop until interrupted or the duration elapses."""
    core.start()
    print(f"Running core {core.core_id} (Ctrl-C to stop)")
    try:
        if args.duration:
            time.sleep(args.duration)
        else:
            while True:
                time.sleep(1)
    except KeyboardInterrupt:
        print()
    finally:
        clean = core.shutdown()
    thoughts = core.decisions.history_size
    print(f"Stopped after {core.uptime_seconds:.1f}s, {thoughts} thoughts (clean={clean})")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="autonome",
        description="Hybrid learning and autonomous decision core",
    )
    parser.add_argument("--core", "-c", help="Core ID", default=None)
    parser.add_argument("--log-level", default=None, help="Log level (default from settings)")

    subparsers = parser.add_subparsers(dest="command", required=True)

    p_status = subparsers.add_parser("status", help="Show core status")
    p_status.add_argument("--json", "-j", action="store_true")

    p_ask = subparsers.add_parser("ask", help="Ask a question in a domain")
    p_ask.add_argument("domain", help="Knowledge domain")
    p_ask.add_argument("query", help="Question")
    p_ask.add_argument("--json", "-j", action="store_true")

    p_decide = subparsers.add_parser("decide", help="Make an autonomous decision")
    p_decide.add_argument("--urgency", type=float, help="Override urgency (0.0 to 1.0)")
    p_decide.add_argument("--complexity", type=float, help="Override complexity (0.0 to 1.0)")
    p_decide.add_argument("--opportunity", type=float, help="Override opportunity (0.0 to 1.0)")
    p_decide.add_argument("--json", "-j", action="store_true")

    p_outcome = subparsers.add_parser("outcome", help="Record a decision outcome")
    p_outcome.add_argument("decision_id", help="Decision ID")
    group = p_outcome.add_mutually_exclusive_group(required=True)
    group.add_argument("--success", dest="success", action="store_true")
    group.add_argument("--failure", dest="success", action="store_false")

    p_run = subparsers.add_parser("run", help="Run the autonomous loop")
    p_run.add_argument("--duration", "-d", type=float, default=None, help="Seconds to run")

    return parser


def main(argv: Optional[List[str]] = None):
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        settings = Settings(core_id=args.core) if args.core else get_settings()
        core_id = validate_core_id(settings.core_id)
        setup_autonome_logging(core_id, args.log_level or settings.log_level)
        core = AutonomyCore(settings, provider=auto_configure_provider(settings))
    except (ValueError, TypeError, ImportError, AutonomeError) as e:
        logger.error(f"Failed to initialize autonome: {e}")
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    commands = {
        "status": cmd_status,
        "ask": cmd_ask,
        "decide": cmd_decide,
        "outcome": cmd_outcome,
        "run": cmd_run,
    }

    try:
        commands[args.command](args, core)
    except ProviderError as e:
        logger.error(f"Cloud reasoning failed ({e.error_class}): {e}")
        print(f"Error: cloud reasoning failed ({e.error_class}): {e}", file=sys.stderr)
        sys.exit(1)
    except (ValueError, TypeError) as e:
        logger.error(f"Input validation error: {e}")
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    except Exception as e:
        logger.error(f"Command failed: {e}")
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    finally:
        core.shutdown()


if __name__ == "__main__":
    main()
