"""CLI command implementations"""

import json
import os
from typing import Callable, Iterable, Optional

import click
from tabulate import tabulate

from luksctl.config import LuksCtlConfig
from luksctl.drivers import CryptsetupController, SystemMountManager
from luksctl.exceptions import (
    EXIT_INTERNAL_ERROR,
    EXIT_SUCCESS,
    EXIT_WARNING,
    LuksCtlException,
    PermissionDenied,
)
from luksctl.i18n import Translator, detect_locale
from luksctl.models import MountOptions
from luksctl.services import MountService, StateStore
from luksctl.utils.logger import get_logger, setup_logging

LOG = get_logger(__name__)


class CliSession:
    """Per-invocation state shared by the command implementations"""

    def __init__(self, config: LuksCtlConfig, translator: Translator, strict: bool = False):
        self.config = config
        self.translator = translator
        self.strict = strict

    @classmethod
    def create(cls, config_file: Optional[str] = None, state_dir: Optional[str] = None,
               log_level: Optional[str] = None, strict: bool = False) -> 'CliSession':
        """
        Load configuration, apply command line overrides and set up logging.

        Raises:
            ConfigurationException if the configuration is unusable
        """
        config = LuksCtlConfig.load(config_file)
        if state_dir:
            config.state_dir = state_dir
        if log_level:
            config.log_level = log_level
        config.validate()

        setup_logging(config.log_level, config.log_format, config.log_file)
        translator = Translator(config.locale or detect_locale())
        LOG.debug(f"Session created: {config.to_dict()}")
        return cls(config, translator, strict)

    def error(self, exc: LuksCtlException):
        message = self.translator.exception(exc)
        click.secho(self.translator('cli.error', message=message), fg='red', err=True)

    def warn(self, exc: LuksCtlException):
        message = self.translator.exception(exc)
        click.secho(self.translator('cli.warning', message=message), fg='yellow', err=True)

    def finish(self, warnings: Iterable[LuksCtlException]) -> int:
        """Print warnings and pick the exit code"""
        warnings = list(warnings)
        for warning in warnings:
            self.warn(warning)
        if warnings and self.strict:
            return EXIT_WARNING
        return EXIT_SUCCESS


def require_root():
    if os.geteuid() != 0:
        raise PermissionDenied()


def build_service(config: LuksCtlConfig) -> MountService:
    """Wire the real drivers and state store"""
    controller = CryptsetupController(config.cryptsetup_bin)
    mount_manager = SystemMountManager(config.mount_bin, config.umount_bin)
    store = StateStore(config.state_dir)
    return MountService(controller, mount_manager, store)


def run(session_factory: Callable[[], CliSession],
        command: Callable[[CliSession], int]) -> int:
    """
    Run one command and map its outcome to an exit code.

    Errors are printed localized on stderr. The locale of a session that
    failed to load comes from the environment.
    """
    session = None
    try:
        session = session_factory()
        require_root()
        return command(session)
    except click.Abort:
        raise
    except LuksCtlException as e:
        if session is None:
            session = CliSession(LuksCtlConfig(), Translator(detect_locale()))
        LOG.debug(f"Command failed: {e}")
        session.error(e)
        return e.exit_code
    except Exception as e:
        LOG.exception(f"Unexpected error: {e}")
        translator = session.translator if session else Translator(detect_locale())
        message = translator('errors.unexpected', error=str(e))
        click.secho(translator('cli.error', message=message), fg='red', err=True)
        return EXIT_INTERNAL_ERROR


def mount_volume(session: CliSession, device: str, mount_point: str,
                 read_only: bool = False, fs_type: Optional[str] = None,
                 extra_options: Optional[str] = None, mkdir: bool = False) -> int:
    """Unlock and mount DEVICE at MOUNT_POINT"""
    _ = session.translator
    service = build_service(session.config)
    options = MountOptions(read_only=read_only, fs_type=fs_type, extra_options=extra_options)

    def prompt_passphrase():
        return click.prompt(_('mount.enter_passphrase'), hide_input=True, err=True)

    click.echo(_('mount.opening', path=device))
    result = service.mount(device, mount_point, options=options,
                           passphrase=prompt_passphrase, mkdir=mkdir)
    record = result.record

    if result.already_unlocked:
        click.echo(_('mount.already_unlocked', name=record.mapper_id))
    else:
        click.echo(_('mount.using_mapper', name=record.mapper_id))

    click.secho(_('mount.success'), fg='green')
    click.echo(_('mount.label_device', path=record.source_device))
    click.echo(_('mount.label_mount_point', path=record.mount_point))
    click.echo(_('mount.label_mapper', name=record.mapper_id))
    click.echo(_('mount.label_security'))
    if record.mount_options.read_only:
        click.echo(_('mount.label_mode_readonly'))
    else:
        click.echo(_('mount.label_mode_readwrite'))

    return session.finish(result.warnings)


def unmount_volume(session: CliSession, mount_point: str, force: bool = False) -> int:
    """Unmount MOUNT_POINT and lock its volume"""
    _ = session.translator
    service = build_service(session.config)

    click.echo(_('umount.unmounting', path=mount_point))
    result = service.unmount(mount_point, force=force)

    if result.source == MountService.SOURCE_MOUNT_TABLE:
        click.echo(_('umount.resolved_from_mount_table', name=result.mapper_id))

    click.secho(_('umount.success'), fg='green')
    click.echo(_('umount.label_mount_point', path=result.mount_point))
    click.echo(_('umount.label_mapper', name=result.mapper_id))

    return session.finish(result.warnings)


def show_status(session: CliSession, format: str = 'table') -> int:
    """List managed mounts with their liveness"""
    _ = session.translator
    entries = build_service(session.config).status()

    if format == 'json':
        data = []
        for entry in entries:
            item = entry.record.to_dict()
            item['live'] = entry.live
            data.append(item)
        click.echo(json.dumps(data, indent=2))
        return EXIT_SUCCESS

    if not entries:
        click.echo(_('status.empty'))
        return EXIT_SUCCESS

    headers = [
        _('status.header_mount_point'),
        _('status.header_device'),
        _('status.header_mapper'),
        _('status.header_mode'),
        _('status.header_state'),
        _('status.header_since'),
    ]
    rows = []
    for entry in entries:
        record = entry.record
        rows.append([
            record.mount_point,
            record.source_device,
            record.mapper_id,
            _('status.ro') if record.mount_options.read_only else _('status.rw'),
            _('status.live') if entry.live else _('status.stale'),
            record.created_at,
        ])
    click.echo(tabulate(rows, headers=headers, tablefmt='grid'))
    click.echo(_('status.total', count=len(entries)))
    return EXIT_SUCCESS


def cleanup_stale(session: CliSession) -> int:
    """Remove records whose mount is gone"""
    _ = session.translator
    removed = build_service(session.config).cleanup_stale()

    if not removed:
        click.echo(_('cleanup.none'))
        return EXIT_SUCCESS

    for record in removed:
        click.echo(_('cleanup.removed', path=record.mount_point, name=record.mapper_id))
    return EXIT_SUCCESS
