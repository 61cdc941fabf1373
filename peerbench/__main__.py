"""Command-line entry point for peerBench trust scoring."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import List, NoReturn, Optional

import typer

from config.scoring_config import SIMULATION_DEFAULTS
from trust_scoring.aggregation.query import LeaderboardQuery, LeaderboardService
from trust_scoring.core.constants import DEFAULT_PAGE_SIZE, SUBMISSIONS_DIR
from trust_scoring.core.exceptions import MissingCredentialError, PolicyConfigError
from trust_scoring.core.types import Submission, parse_timestamp
from trust_scoring.data.loaders import load_prompts, load_responses, load_submission, save_submission
from trust_scoring.ingestion.ingest import SubmissionIngestor
from trust_scoring.integrity.content_id import compute_cid, verify_cid
from trust_scoring.integrity.signing import sign, signer_address, verify
from trust_scoring.run_scoring import create_judge_client, run_scoring
from trust_scoring.simulation.harness import SimulationConfig, run_simulation
from trust_scoring.simulation.personas import build_personas
from trust_scoring.utils.csv_reporter import export_leaderboard_csv
from trust_scoring.utils.logging import configure_console_only_logging

from .settings import Settings, load_settings
from .utils.rich_render import render_leaderboard, render_violations


app = typer.Typer(help="Trust aggregation and weighted leaderboards for peerBench")


def _fail(message: str) -> NoReturn:
    typer.secho(message, err=True, fg=typer.colors.RED)
    raise typer.Exit(code=1)


def _settings(ctx: typer.Context) -> Settings:
    return ctx.obj


@app.callback()
def main_options(
    ctx: typer.Context,
    config: Optional[Path] = typer.Option(
        None,
        "--config",
        "-c",
        help="Settings file (defaults to ./peerbench.yaml when present).",
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log engine debug output to the console."),
) -> None:
    """Load settings shared by every command."""

    if verbose:
        configure_console_only_logging(logging.DEBUG)
    try:
        ctx.obj = load_settings(config)
    except (FileNotFoundError, PolicyConfigError) as exc:
        _fail(str(exc))


@app.command("sign")
def sign_file(
    ctx: typer.Context,
    file: Path = typer.Argument(..., help="Submission envelope or bare payload JSON."),
    uploader: Optional[str] = typer.Option(None, "--uploader", help="Uploader id recorded in the envelope."),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Write the signed envelope here."),
) -> None:
    """Compute the CID, sign with PB_PRIVATE_KEY and write side files."""

    settings = _settings(ctx)
    submission = load_submission(file, uploader_id=uploader)
    if submission is None:
        _fail(f"Could not read submission from {file}")

    try:
        cid = compute_cid(submission.payload)
        signature = sign(submission.payload, settings.private_key)
        address = signer_address(settings.private_key)
    except MissingCredentialError as exc:
        _fail(str(exc))

    signed = Submission(
        cid=cid,
        payload=submission.payload,
        uploader_id=submission.uploader_id,
        signature=signature,
        signer_address=address,
        created_at=submission.created_at,
        merge_id=submission.merge_id,
        chunk_index=submission.chunk_index,
        final=submission.final,
    )
    path = save_submission(output or file, signed)
    typer.echo(json.dumps({"cid": cid, "signerAddress": address, "path": str(path)}, indent=2))


@app.command("verify")
def verify_file(
    file: Path = typer.Argument(..., help="Submission file with .cid/.signature side files."),
) -> None:
    """Check a submission file against its CID and signature."""

    submission = load_submission(file)
    if submission is None:
        _fail(f"Could not read submission from {file}")

    report = {
        "cid": submission.cid,
        "cidValid": verify_cid(submission.payload, submission.cid),
        "signed": submission.signature is not None,
        "signatureValid": verify(submission.payload, submission.signature, submission.signer_address),
    }
    typer.echo(json.dumps(report, indent=2))
    if not report["cidValid"] or (report["signed"] and not report["signatureValid"]):
        raise typer.Exit(code=1)


@app.command()
def ingest(
    ctx: typer.Context,
    files: List[Path] = typer.Argument(..., help="Submission files to ingest."),
) -> None:
    """Ingest submission files into the submission log."""

    settings = _settings(ctx)
    log = settings.open_log()
    try:
        ingestor = SubmissionIngestor(log, settings.ingestion_policy())
        results = []
        for file in files:
            submission = load_submission(file)
            if submission is None:
                results.append({"file": str(file), "accepted": False, "reason": "Unreadable"})
                continue
            results.append({"file": str(file), **ingestor.ingest(submission).to_dict()})
    finally:
        log.close()

    typer.echo(json.dumps(results, indent=2))
    if not all(result["accepted"] for result in results):
        raise typer.Exit(code=1)


@app.command()
def score(
    ctx: typer.Context,
    responses_file: Path = typer.Argument(..., help="Responses payload JSON."),
    prompts_file: Path = typer.Option(..., "--prompts", help="Prompts payload JSON."),
    uploader: str = typer.Option(..., "--uploader", help="Uploader id for the scores submission."),
    scorers: List[str] = typer.Option([], "--scorer", help="Scorer identifier (repeatable)."),
    output_dir: Path = typer.Option(Path(SUBMISSIONS_DIR), "--output-dir", help="Where the submission is written."),
    ingest_result: bool = typer.Option(True, "--ingest/--no-ingest", help="Ingest the scores submission."),
) -> None:
    """Score responses and write (and ingest) a signed scores submission."""

    settings = _settings(ctx)
    prompts = load_prompts(prompts_file)
    responses = load_responses(responses_file, prompts)
    scorer_ids = scorers or settings.scorers
    judge = create_judge_client(settings.judge, settings.judge_api_key) if "llm-judge" in scorer_ids else None

    log = settings.open_log() if ingest_result else None
    try:
        outcome = run_scoring(
            responses,
            uploader_id=uploader,
            scorer_ids=scorer_ids,
            private_key=settings.private_key,
            judge=judge,
            output_dir=str(output_dir),
            ingestor=SubmissionIngestor(log, settings.ingestion_policy()) if log is not None else None,
        )
    except (MissingCredentialError, PolicyConfigError) as exc:
        _fail(str(exc))
    finally:
        if log is not None:
            log.close()
        if judge is not None:
            judge.close()

    if outcome is None:
        _fail("No response could be scored.")
    report = {"cid": outcome.submission.cid, "path": str(outcome.path), "scores": outcome.score_count}
    if outcome.ingest_result is not None:
        report["ingest"] = outcome.ingest_result.to_dict()
    typer.echo(json.dumps(report, indent=2))


@app.command()
def leaderboard(
    ctx: typer.Context,
    group_by: str = typer.Option("model", "--group-by", help="model, provider or validator."),
    page: int = typer.Option(1, "--page"),
    page_size: int = typer.Option(DEFAULT_PAGE_SIZE, "--page-size"),
    algorithm: Optional[str] = typer.Option(None, "--algorithm", help="simScores001 or simScores002."),
    user_weight_multiplier: Optional[float] = typer.Option(None, "--user-weight-multiplier"),
    min_coverage: Optional[float] = typer.Option(None, "--min-coverage", help="Percentage of the prompt set."),
    prompt_age: Optional[str] = typer.Option(None, "--prompt-age", help="none, linear or exponential."),
    response_delay: Optional[str] = typer.Option(None, "--response-delay", help="none, linear or exponential."),
    prompt_set: Optional[str] = typer.Option(None, "--prompt-set"),
    provider: Optional[str] = typer.Option(None, "--provider"),
    owner: Optional[str] = typer.Option(None, "--owner"),
    entity: Optional[str] = typer.Option(None, "--id", help="Only this entity."),
    as_of: Optional[str] = typer.Option(None, "--as-of", help="Reference time (ISO-8601)."),
    as_json: bool = typer.Option(False, "--json", help="Print the page as JSON."),
    csv_path: Optional[Path] = typer.Option(None, "--csv", help="Also export the page to CSV."),
) -> None:
    """Compute the weighted leaderboard from the submission log."""

    settings = _settings(ctx)
    try:
        query = LeaderboardQuery(
            page=page,
            page_size=page_size,
            group_by=group_by,
            owner_id=owner,
            entity_id=entity,
            provider=provider,
            prompt_set_id=prompt_set,
            user_scoring_algorithm=algorithm,
            user_weight_multiplier=user_weight_multiplier,
            min_coverage=min_coverage,
            prompt_age_weighting=prompt_age,
            response_delay_weighting=response_delay,
            as_of=parse_timestamp(as_of),
        )
        log = settings.open_log()
        try:
            result = LeaderboardService(
                log,
                settings.weighting_policy(),
                trusted_reviewers=settings.ingestion_policy().trusted_signers,
            ).query(query)
        finally:
            log.close()
    except (PolicyConfigError, ValueError) as exc:
        _fail(str(exc))

    if as_json:
        typer.echo(json.dumps(result.to_dict(), indent=2))
    else:
        render_leaderboard(result.data, title=f"Leaderboard by {group_by}", stats=result.stats)
    if csv_path is not None:
        export_leaderboard_csv(result.data, output_path=csv_path)


@app.command()
def simulate(
    seed: int = typer.Option(SIMULATION_DEFAULTS["seed"], "--seed"),
    personas: int = typer.Option(SIMULATION_DEFAULTS["num_personas"], "--personas"),
    prompt_set_size: int = typer.Option(SIMULATION_DEFAULTS["prompt_set_size"], "--prompt-set-size"),
    rounds: int = typer.Option(SIMULATION_DEFAULTS["rounds"], "--rounds"),
    tolerance: float = typer.Option(SIMULATION_DEFAULTS["tolerance"], "--tolerance"),
    as_json: bool = typer.Option(False, "--json", help="Print entries and violations as JSON."),
) -> None:
    """Run the default persona mix and report ranking violations."""

    try:
        config = SimulationConfig(
            personas=build_personas(
                SIMULATION_DEFAULTS["distribution"],
                personas,
                cabal_size=SIMULATION_DEFAULTS["cabal_size"],
            ),
            prompt_set_size=prompt_set_size,
            rounds=rounds,
            seed=seed,
            tolerance=tolerance,
        )
    except PolicyConfigError as exc:
        _fail(str(exc))

    result = run_simulation(config)
    violations = result.violations()
    if as_json:
        typer.echo(json.dumps({
            "data": [entry.to_dict() for entry in result.entries],
            "violations": [list(pair) for pair in violations],
            "accepted": result.accepted,
            "duplicates": result.duplicates,
            "rejected": result.rejected,
        }, indent=2))
    else:
        render_leaderboard(result.entries, title=f"Simulation (seed {seed})")
        render_violations(violations)
    if violations:
        raise typer.Exit(code=1)


def main() -> None:
    """Entry point compatible with console_scripts."""

    app()


if __name__ == "__main__":
    main()
