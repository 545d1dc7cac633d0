import argparse, asyncio, json
from propdesk.config.env import load_cfg
from propdesk.config.constants import DEFAULT_ENV
from propdesk.config.logging import setup_logging
from propdesk.catalog.tiers import build_challenges, load_catalog
from propdesk.vaults.engine import check_scale_up
from apps.evaluator.tasks.evaluation_watch import run as run_evaluation_watch


log = setup_logging()

async def run_loop(args):
    log.info("=== EVALUATION ENGINE ===", env_file=args.env_file, enroll=args.enroll)
    cfg = load_cfg(args.env_file)
    setup_logging(cfg.log_level)
    log.info("Config loaded", venue_base_url=cfg.venue_base_url, interval_sec=cfg.eval_interval_sec,
             attestation="http" if cfg.attestation_url else "local")
    await run_evaluation_watch(cfg, enroll=args.enroll or [])

async def run_catalog(args):
    challenges = load_catalog(args.catalog) if args.catalog else build_challenges()
    log.info("Catalog built", count=len(challenges))
    print(json.dumps([c.model_dump() for c in challenges], indent=2))

async def run_scale_up(args):
    new_alloc = check_scale_up(args.allocation, args.months, args.profit_pct)
    if new_alloc is None:
        log.info("No scale-up", allocation=args.allocation, months=args.months, profit_pct=args.profit_pct)
        print(json.dumps({"allocation": args.allocation, "scaled": False}))
        return
    log.info("Scale-up granted", allocation=args.allocation, new_allocation=new_alloc)
    print(json.dumps({"allocation": new_alloc, "scaled": True}))

def main():
    ap = argparse.ArgumentParser()
    ap.add_argument("--env-file", default=DEFAULT_ENV)
    sub = ap.add_subparsers(dest="cmd")

    r = sub.add_parser("run")
    r.add_argument("--enroll", action="append", help="agent_id[:challenge_id], repeatable")
    r.set_defaults(func=run_loop)

    c = sub.add_parser("catalog")
    c.add_argument("--catalog", required=False, help="YAML catalog (defaults to built-in tiers)")
    c.set_defaults(func=run_catalog)

    s = sub.add_parser("scale-up")
    s.add_argument("--allocation", type=float, required=True)
    s.add_argument("--months", type=int, required=True)
    s.add_argument("--profit-pct", type=float, required=True)
    s.set_defaults(func=run_scale_up)

    args = ap.parse_args()
    if not getattr(args, "func", None):
        ap.print_help(); return
    asyncio.run(args.func(args))

if __name__ == "__main__":
    main()
