"""Command-line entry point: score one message and print the result as JSON."""

import asyncio
import json
from pathlib import Path

import typer

from message_accuracy.assessment.engine import AccuracyEngine
from message_accuracy.config import Settings
from message_accuracy.log_config import configure_logging
from message_accuracy.models.request import AnalysisRequest, Proficiency, Tier
from message_accuracy.models.snapshot import AccuracySnapshot

app = typer.Typer(help="Score the English accuracy of a learner message.")


async def _run(engine: AccuracyEngine, request: AnalysisRequest) -> str:
    try:
        pair = await engine.analyze(request)
    finally:
        await engine.aclose()
    return pair.model_dump_json(indent=2)


@app.command()
def score(
    message: str = typer.Argument(..., help="Learner message to score."),
    tier: Tier = typer.Option(Tier.FREE, "--tier", help="Subscription tier."),
    level: Proficiency = typer.Option(Proficiency.INTERMEDIATE, "--level", help="Learner proficiency."),
    tutor_response: str = typer.Option(None, "--tutor-response", help="Tutor reply to mine for corrections."),
    previous: Path = typer.Option(None, "--previous", help="JSON file holding the previous weighted snapshot."),
    env: str = typer.Option(None, "--env", help="Logging environment (production or development)."),
):
    configure_logging(env)
    previous_snapshot = None
    if previous is not None:
        if not previous.exists():
            typer.echo(f"Missing previous snapshot at {previous}", err=True)
            raise typer.Exit(code=1)
        previous_snapshot = AccuracySnapshot.model_validate(json.loads(previous.read_text(encoding="utf-8")))

    request = AnalysisRequest(
        message=message,
        tutor_response=tutor_response,
        tier=tier,
        level=level,
        previous=previous_snapshot,
    )
    typer.echo(asyncio.run(_run(AccuracyEngine(settings=Settings()), request)))


if __name__ == "__main__":
    app()
