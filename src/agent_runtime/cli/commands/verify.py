"""agent-runtime verify -- check a proof of work offline."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import click

from agent_runtime.cli.formatting import format_error, format_verification, get_console


def _read_json(path: str) -> Any:
    return json.loads(Path(path).read_text(encoding="utf-8"))


@click.command()
@click.argument("proof_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--signer", required=True, help="Address expected to have signed the proof.")
@click.option(
    "--input", "input_file", default=None, type=click.Path(exists=True, dir_okay=False),
    help="JSON file with the task input to check against the proof.",
)
@click.option(
    "--output", "output_file", default=None, type=click.Path(exists=True, dir_okay=False),
    help="JSON file with the task output to check against the proof.",
)
@click.option(
    "--max-age-ms", default=None, type=int,
    help="Freshness window (defaults to PROOF_MAX_AGE_MS).",
)
@click.pass_context
def verify(
    ctx: click.Context,
    proof_file: str,
    signer: str,
    input_file: str | None,
    output_file: str | None,
    max_age_ms: int | None,
) -> None:
    """Verify the proof in PROOF_FILE.

    PROOF_FILE holds either a bare proof or a stored result document; for a
    result document its input and output are checked too unless --input or
    --output override them. Exits 1 when any check fails.
    """
    from agent_runtime.cli import _get_config
    from agent_runtime.models.proof import ProofOfWork
    from agent_runtime.proof import MISSING, verify_proof

    console = get_console()
    try:
        document = _read_json(proof_file)
        expected_input: Any = MISSING
        expected_output: Any = MISSING
        if isinstance(document, dict) and "proof" in document:
            expected_input = document.get("input", MISSING)
            expected_output = document.get("output", MISSING)
            document = document["proof"]
        if input_file is not None:
            expected_input = _read_json(input_file)
        if output_file is not None:
            expected_output = _read_json(output_file)

        proof = ProofOfWork.model_validate(document)
        if max_age_ms is None:
            max_age_ms = _get_config(ctx).proof_max_age_ms
        outcome = verify_proof(
            proof, signer, expected_input, expected_output, max_age_ms=max_age_ms
        )
    except Exception as e:
        format_error(str(e), console)
        raise SystemExit(1) from None

    format_verification(outcome, console)
    if not outcome.valid:
        raise SystemExit(1)
