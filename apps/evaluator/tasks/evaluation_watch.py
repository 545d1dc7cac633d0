# background loop: seed → enroll → tick (snapshot → accumulate → decide) → alert
import asyncio, signal
from typing import Optional, Sequence

import structlog

from propdesk.attestation.sinks import AttestationSink, HttpAttestationSink, LocalAttestationSink
from propdesk.catalog.tiers import build_challenges, load_catalog, seed_challenges
from propdesk.config.env import Cfg
from propdesk.core.usecases.enroll import enter_challenge
from propdesk.core.usecases.evaluate import EntryLifecycle
from propdesk.evaluation.scheduler import EvaluationScheduler
from propdesk.events.bus import EventBus
from propdesk.funded.engine import FundedAllocationEngine
from propdesk.portfolio.tracker import FallbackEquitySource
from propdesk.store.memory import InMemoryStore
from propdesk.vaults.engine import VaultEngine
from propdesk.venue.rest import VenueClient

log = structlog.get_logger()


def build_sink(cfg: Cfg) -> AttestationSink:
    return HttpAttestationSink(cfg.attestation_url) if cfg.attestation_url else LocalAttestationSink()

def build_scheduler(cfg: Cfg, store: InMemoryStore, bus: EventBus,
                    venue: Optional[VenueClient] = None) -> EvaluationScheduler:
    lifecycle = EntryLifecycle(store, build_sink(cfg), bus)
    return EvaluationScheduler(
        store, lifecycle,
        venue if venue is not None else VenueClient(cfg.venue_base_url),
        FallbackEquitySource(),
        deviation=cfg.fallback_deviation,
        annualization=cfg.sharpe_annualization,
        history_cap=cfg.pnl_history_cap,
    )

def build_funded(cfg: Cfg, store: InMemoryStore, sink: Optional[AttestationSink] = None,
                 venue: Optional[VenueClient] = None) -> FundedAllocationEngine:
    return FundedAllocationEngine(
        store, sink if sink is not None else build_sink(cfg), venue,
        multiplier=cfg.funded_allocation_multiplier,
        fee_bps=cfg.funded_protocol_fee_bps,
        max_daily_loss=cfg.funded_max_daily_loss,
        max_total_loss=cfg.funded_max_total_loss,
    )

def build_vaults(cfg: Cfg, store: InMemoryStore, venue: Optional[VenueClient] = None) -> VaultEngine:
    return VaultEngine(store, venue if venue is not None else VenueClient(cfg.venue_base_url),
                       default_share_bps=cfg.vault_agent_share_bps)

def parse_enrollment(arg: str):
    # agent_id[:challenge_id], defaults to the $10k phase 1 challenge
    agent, _, challenge = arg.partition(":")
    return agent, challenge or "10k-p1"

async def run(cfg: Cfg, enroll: Sequence[str] = ()):
    store = InMemoryStore()
    challenges = load_catalog(cfg.catalog_path) if cfg.catalog_path else build_challenges()
    seed_challenges(store, challenges)

    bus = EventBus()
    bus.subscribe(lambda ev: log.info("[ALERT]", **ev.model_dump()))
    for arg in enroll:
        agent, challenge_id = parse_enrollment(arg)
        if enter_challenge(store, challenge_id, agent, agent, bus=bus) is None:
            log.warning("enrollment rejected", agent=agent, challenge_id=challenge_id)

    venue = VenueClient(cfg.venue_base_url)
    scheduler = build_scheduler(cfg, store, bus, venue)
    funded = build_funded(cfg, store, venue=venue)
    vaults = build_vaults(cfg, store, venue)
    log.info("engines ready", funded_multiplier=funded.multiplier, funded_fee_bps=funded.fee_bps,
             vault_share_bps=vaults.default_share_bps)
    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop.set)
        except NotImplementedError:
            pass

    scheduler.start(cfg.eval_interval_sec)
    try:
        await stop.wait()
    finally:
        log.info("shutting down")
        await scheduler.stop()
