"""Main CLI entry points: luks-mount, luks-umount and luksctl"""

import click

from luksctl.cli import commands
from luksctl.config import LOG_LEVELS
from luksctl.version import version_string

CONTEXT_SETTINGS = {'help_option_names': ['-h', '--help']}


_COMMON_OPTIONS = (
    click.option('--config', 'config_file', type=click.Path(dir_okay=False),
                 help='Configuration file path'),
    click.option('--state-dir', type=click.Path(file_okay=False),
                 help='State directory (default: /run/luksctl)'),
    click.option('--log-level',
                 type=click.Choice(LOG_LEVELS, case_sensitive=False),
                 help='Log level'),
    click.option('--strict', is_flag=True,
                 help='Exit non-zero when the operation finished with warnings'),
)


def common_options(func):
    """Options shared by every entry point"""
    for option in reversed(_COMMON_OPTIONS):
        func = option(func)
    return func


def _session_factory(config_file, state_dir, log_level, strict):
    return lambda: commands.CliSession.create(config_file, state_dir, log_level, strict)


@click.command(context_settings=CONTEXT_SETTINGS)
@common_options
@click.option('--mkdir', is_flag=True, help='Create the mount point if it does not exist')
@click.option('--ro', '-r', 'read_only', is_flag=True, help='Mount read-only')
@click.option('--fs-type', '-t', help='Filesystem type (ext4, xfs, btrfs, ...)')
@click.option('--options', '-o', 'extra_options', help='Additional mount options')
@click.argument('device')
@click.argument('mount_point')
@click.pass_context
def luks_mount(ctx, config_file, state_dir, log_level, strict,
               mkdir, read_only, fs_type, extra_options, device, mount_point):
    """
    Unlock a LUKS device and mount it

    Examples:
      luks-mount /dev/sdb1 /mnt/secure
      luks-mount --mkdir --ro /dev/sdb1 /mnt/secure
      luks-mount -t ext4 -o noatime /dev/sdb1 /mnt/secure
    """
    ctx.exit(commands.run(
        _session_factory(config_file, state_dir, log_level, strict),
        lambda session: commands.mount_volume(
            session, device, mount_point,
            read_only=read_only, fs_type=fs_type,
            extra_options=extra_options, mkdir=mkdir,
        ),
    ))


@click.command(context_settings=CONTEXT_SETTINGS)
@common_options
@click.option('--force', '-f', is_flag=True, help='Lazy unmount when the filesystem is busy')
@click.argument('mount_point')
@click.pass_context
def luks_umount(ctx, config_file, state_dir, log_level, strict, force, mount_point):
    """
    Unmount a LUKS volume and lock it

    Examples:
      luks-umount /mnt/secure
      luks-umount --force /mnt/secure
    """
    ctx.exit(commands.run(
        _session_factory(config_file, state_dir, log_level, strict),
        lambda session: commands.unmount_volume(session, mount_point, force=force),
    ))


@click.group(context_settings=CONTEXT_SETTINGS)
@click.version_option(version_string(), prog_name="luksctl")
@common_options
@click.pass_context
def cli(ctx, config_file, state_dir, log_level, strict):
    """luksctl - encrypted volume mount management"""
    ctx.ensure_object(dict)
    ctx.obj['session_factory'] = _session_factory(config_file, state_dir, log_level, strict)


@cli.command()
@click.option('--format', '-f',
              type=click.Choice(['table', 'json'], case_sensitive=False),
              default='table',
              help='Output format')
@click.pass_context
def status(ctx, format):
    """
    Show managed mounts

    Examples:
      luksctl status
      luksctl status --format json
    """
    ctx.exit(commands.run(
        ctx.obj['session_factory'],
        lambda session: commands.show_status(session, format.lower()),
    ))


@cli.command()
@click.pass_context
def cleanup(ctx):
    """
    Remove records of mounts that no longer exist

    Example:
      luksctl cleanup
    """
    ctx.exit(commands.run(ctx.obj['session_factory'], commands.cleanup_stale))


def mount_main():
    """luks-mount entry point"""
    luks_mount()


def umount_main():
    """luks-umount entry point"""
    luks_umount()


def main():
    """luksctl entry point"""
    cli(obj={})


if __name__ == '__main__':
    main()
