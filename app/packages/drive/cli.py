"""运维命令：查看配置、触发回收站过期清理与一致性审计。

过期清理本身不负责调度，由 cron / Kubernetes CronJob 等外部定时器按需调用
``campaign-drive cleanup-trash``。
"""

import json

import click

from app.packages.drive.core.config import get_settings
from app.packages.drive.core.logger import logger, setup_logging
from app.packages.drive.db import session as db_session
from app.packages.drive.db.init_db import init_db
from app.packages.drive.services.object_store import build_object_store
from app.packages.drive.services.trash_service import trash_service


def _echo_json(payload) -> None:
    click.echo(json.dumps(payload, ensure_ascii=False, indent=2))


@click.group()
def cli():
    """Campaign Drive maintenance commands"""
    setup_logging()


@cli.command()
def show_config():
    """Show current configuration"""
    settings = get_settings()

    click.echo("Current Configuration:")
    click.echo(f"  Project: {settings.project_name}")
    click.echo(f"  Storage Backend: {settings.storage_backend}")
    click.echo(f"  Bucket: {settings.storage_bucket}")
    click.echo(f"  Local Root: {settings.local_storage_directory}")
    click.echo(f"  S3 Region: {settings.s3_region}")
    click.echo(f"  S3 Endpoint: {settings.s3_endpoint_url}")
    click.echo(f"  Timezone: {settings.timezone}")
    click.echo(f"  Log File: {settings.log_file_path}")


@cli.command()
def cleanup_trash():
    """Purge trash entries whose retention window has expired"""
    init_db()
    store = build_object_store()
    with db_session.SessionLocal() as db:
        result = trash_service.cleanup_expired(db, store)
    _echo_json(result.to_dict("id"))
    if result.fail_count:
        logger.warning("cleanup-trash finished with %s failures", result.fail_count)
        raise SystemExit(1)


@cli.command()
@click.option("--workspace", "workspace_id", default=None, help="Only audit a single workspace")
@click.option("--repair", is_flag=True, default=False, help="Drop dangling records and register untracked objects")
def audit_trash(workspace_id, repair):
    """Compare trash records against objects under the trash prefix"""
    init_db()
    store = build_object_store()
    with db_session.SessionLocal() as db:
        report = trash_service.audit(db, store, workspace_id=workspace_id, repair=repair)
    _echo_json(report.to_dict())
    if not report.consistent and not repair:
        raise SystemExit(1)


if __name__ == "__main__":
    cli()
