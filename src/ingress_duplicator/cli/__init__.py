import typer
from typing_extensions import Annotated

from dotenv import load_dotenv, find_dotenv

from ingress_duplicator.exceptions import IngressDuplicatorError

load_dotenv(find_dotenv(usecwd=True))

app = typer.Typer(
    help="Ingress duplicator: copies AppIngress templates into Ingresses in other namespaces",
    add_completion=False,
)


@app.command("operator")
def run_operator():
    """Run the Kubernetes operator (connects to cluster)."""
    from ingress_duplicator.main import main

    main()


@app.command("generate-crds")
def generate_crds(
    output: Annotated[
        str, typer.Option("-o", "--output", help="Output directory")
    ] = "crds/generated",
    force: Annotated[bool, typer.Option("--force", help="Force regeneration")] = False,
    validate: Annotated[
        bool, typer.Option("--validate", help="Validate generated CRDs")
    ] = False,
):
    """Generate CRD YAML files from pydantic models."""
    from pathlib import Path
    from ingress_duplicator.crd.generator import CRDManager

    output_dir = Path(output)
    manager = CRDManager(output_dir=output_dir)

    try:
        success = manager.generate_all_crds(force=force)
    except (OSError, ValueError) as e:
        typer.echo(f"Failed to generate CRDs: {e}")
        raise typer.Exit(1)

    if not success:
        typer.echo("No CRDs generated (models unchanged)")
        return

    typer.echo(f"CRDs generated successfully in {output_dir}")
    if validate:
        if manager.validate_generated_crds():
            typer.echo("CRD validation passed")
        else:
            typer.echo("CRD validation failed")
            raise typer.Exit(1)


@app.command("validate-models")
def validate_models():
    """Validate CRD models without generating files."""
    from ingress_duplicator.crd.generator import CRDManager
    from ingress_duplicator.crd.registry import CRD_KINDS, validate_model_schema

    invalid = [
        key for key, crd_kind in CRD_KINDS.items()
        if not validate_model_schema(crd_kind.spec_model)
    ]
    if invalid:
        typer.echo(f"Model validation failed: {', '.join(invalid)}")
        raise typer.Exit(1)

    crds = CRDManager().get_crds_as_dict()
    typer.echo(f"Validated {len(CRD_KINDS)} CRD models")
    for key in CRD_KINDS:
        typer.echo(f"  - {key}")
    typer.echo(f"Generated {len(crds)} CRDs in memory")


@app.command("reconcile")
def reconcile(
    namespace: Annotated[str, typer.Argument(help="Namespace of the AppIngress")],
    name: Annotated[str, typer.Argument(help="Name of the AppIngress")],
):
    """Reconcile a single AppIngress once against the current kube context."""
    from kubernetes.config import ConfigException
    from ingress_duplicator.main import build_reconciler, configure_logging, load_kube_config

    configure_logging()
    try:
        load_kube_config()
        result = build_reconciler().reconcile(namespace, name)
    except (IngressDuplicatorError, ConfigException) as e:
        typer.echo(f"Reconcile of {namespace}/{name} failed: {e}")
        raise typer.Exit(1)

    typer.echo(f"Reconciled {namespace}/{name}: {result.action}")
    if result.requeue_after:
        typer.echo(f"Requeue requested after {result.requeue_after}s")


def main():
    app()
