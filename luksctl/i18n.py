"""
Internationalization (i18n) support

Message catalogs for all user-visible CLI text. Supported languages:
English (en), Korean (ko), Japanese (ja). The core never formats
human-readable text; it raises exceptions carrying a message key and
parameters, and the CLI renders them here.

Usage:
    translator = Translator(detect_locale())
    print(translator('mount.success'))
    print(translate('errors.device_not_luks', 'ko', path='/dev/sdb1'))
"""

import os
from typing import Dict, Mapping, Optional

SUPPORTED_LOCALES = ('en', 'ko', 'ja')
DEFAULT_LOCALE = 'en'
LOCALE_ENV_VARS = ('LC_ALL', 'LC_MESSAGES', 'LANG')


MESSAGES: Dict[str, Dict[str, str]] = {
    'en': {
        # Errors
        'errors.unexpected': "Unexpected error: {error}",
        'errors.already_mounted': "{path} already has an active encrypted mount ({device}).",
        'errors.device_not_luks': "{path} is not a LUKS device.",
        'errors.device_uuid_invalid': "The device reported an invalid LUKS UUID: {uuid}",
        'errors.mount_point_creation_failed': "Failed to create mount point {path}: {error}",
        'errors.mount_point_missing': "Mount point {path} does not exist (use --mkdir to create it).",
        'errors.mount_point_not_dir': "Mount point {path} is not a directory.",
        'errors.mount_point_too_long': "Mount point path is too long: {path}",
        'errors.unlock_failed': "Failed to unlock {path}: {error}",
        'errors.wrong_passphrase': "Failed to unlock {path}: incorrect passphrase.",
        'errors.mapper_collision': "Mapper name {name} is already used by {device}.",
        'errors.passphrase_missing': "A passphrase is required to unlock the device.",
        'errors.mount_failed': "Failed to mount {path}: {error}. The device was locked again.",
        'errors.mount_failed_rollback': "Failed to mount {path}: {error}. Locking the device again also failed: {rollback_error}",
        'errors.not_mounted': "{path} is not a mounted LUKS volume managed by luksctl.",
        'errors.unmount_failed': "Failed to unmount {path}: {error}",
        'errors.store_unavailable': "State directory {path} is unavailable: {error}",
        'errors.record_not_found': "No record found for {path}.",
        'errors.invalid_input': "Invalid input.",
        'errors.must_be_root': "This program must be run as root.",
        'errors.configuration': "Invalid configuration.",
        'errors.config_unknown_key': "Unknown configuration key: {key}",
        'errors.config_missing': "Configuration file not found: {path}",
        'errors.config_invalid': "Configuration file {path} is invalid: {error}",
        'errors.config_state_dir': "State directory must be an absolute path: {path}",
        'errors.config_log_level': "Invalid log level: {value}",
        'errors.config_log_format': "Invalid log format: {value}",
        'errors.path_empty': "The {what} path is empty.",
        'errors.path_null_byte': "The {what} path contains a null byte.",
        'errors.path_not_absolute': "The {what} path must be absolute: {path}",
        'errors.path_traversal': "The {what} path must not contain '..': {path}",
        'errors.device_not_in_dev': "Device path must be under /dev/: {path}",
        'errors.mapper_name_length': "Mapper name must be 1 to {max} characters: {name}",
        'errors.mapper_name_prefix': "Mapper name must start with 'luks-': {name}",
        'errors.mapper_name_chars': "Mapper name contains forbidden characters: {name}",
        'errors.fs_type_invalid': "Invalid filesystem type: {fs_type}",
        'errors.fs_type_unsupported': "Unsupported filesystem type '{fs_type}'. Allowed: {allowed}",
        'errors.mount_options_null_byte': "Mount options contain a null byte.",
        'errors.mount_options_too_long': "Mount options are too long (max {max} characters).",
        'errors.mount_option_forbidden_chars': "Mount option contains forbidden characters: {opt}",
        # Warnings
        'warnings.state_persist_failed': "Mounted, but the mount record could not be saved ({error}). luks-umount will fall back to the mount table.",
        'warnings.lock_failed': "Unmounted, but the LUKS device {name} could not be locked: {error}",
        'warnings.state_remove_failed': "Unmounted, but the mount record for {path} could not be removed: {error}",
        # CLI
        'cli.error': "Error: {message}",
        'cli.warning': "Warning: {message}",
        'mount.enter_passphrase': "Enter passphrase",
        'mount.opening': "Opening LUKS device: {path}",
        'mount.using_mapper': "Using mapper: {name}",
        'mount.already_unlocked': "Device was already unlocked as {name}; reusing it.",
        'mount.success': "Successfully mounted LUKS volume!",
        'mount.label_device': "  Device:      {path}",
        'mount.label_mount_point': "  Mount point: {path}",
        'mount.label_mapper': "  Mapper:      /dev/mapper/{name}",
        'mount.label_security': "  Security:    nosuid, nodev",
        'mount.label_mode_readonly': "  Mode:        read-only",
        'mount.label_mode_readwrite': "  Mode:        read-write",
        'umount.unmounting': "Unmounting: {path}",
        'umount.resolved_from_mount_table': "No mount record found; resolved {name} from the mount table.",
        'umount.success': "Successfully unmounted and locked LUKS volume!",
        'umount.label_mount_point': "  Mount point: {path}",
        'umount.label_mapper': "  Mapper:      {name}",
        'status.empty': "No managed LUKS mounts.",
        'status.header_mount_point': "Mount point",
        'status.header_device': "Device",
        'status.header_mapper': "Mapper",
        'status.header_mode': "Mode",
        'status.header_state': "State",
        'status.header_since': "Since",
        'status.live': "live",
        'status.stale': "stale",
        'status.ro': "ro",
        'status.rw': "rw",
        'status.total': "Total: {count} record(s)",
        'cleanup.none': "No stale records found.",
        'cleanup.removed': "Removed stale record: {path} ({name})",
    },
    'ko': {
        'errors.unexpected': "예기치 않은 오류: {error}",
        'errors.already_mounted': "{path}에 이미 활성화된 암호화 마운트가 있습니다 ({device}).",
        'errors.device_not_luks': "{path}은(는) LUKS 장치가 아닙니다.",
        'errors.device_uuid_invalid': "장치가 잘못된 LUKS UUID를 보고했습니다: {uuid}",
        'errors.mount_point_creation_failed': "마운트 지점 {path} 생성 실패: {error}",
        'errors.mount_point_missing': "마운트 지점 {path}이(가) 존재하지 않습니다 (--mkdir 옵션으로 생성하세요).",
        'errors.mount_point_not_dir': "마운트 지점 {path}은(는) 디렉토리가 아닙니다.",
        'errors.mount_point_too_long': "마운트 지점 경로가 너무 깁니다: {path}",
        'errors.unlock_failed': "{path} 잠금 해제 실패: {error}",
        'errors.wrong_passphrase': "{path} 잠금 해제 실패: 암호가 올바르지 않습니다.",
        'errors.mapper_collision': "매퍼 이름 {name}은(는) 이미 {device}에서 사용 중입니다.",
        'errors.passphrase_missing': "장치 잠금 해제에 암호가 필요합니다.",
        'errors.mount_failed': "{path} 마운트 실패: {error}. 장치를 다시 잠갔습니다.",
        'errors.mount_failed_rollback': "{path} 마운트 실패: {error}. 장치를 다시 잠그는 것도 실패했습니다: {rollback_error}",
        'errors.not_mounted': "{path}은(는) luksctl이 관리하는 마운트된 LUKS 볼륨이 아닙니다.",
        'errors.unmount_failed': "{path} 마운트 해제 실패: {error}",
        'errors.store_unavailable': "상태 디렉토리 {path}을(를) 사용할 수 없습니다: {error}",
        'errors.record_not_found': "{path}에 대한 기록이 없습니다.",
        'errors.invalid_input': "잘못된 입력입니다.",
        'errors.must_be_root': "이 프로그램은 root 권한으로 실행해야 합니다.",
        'errors.configuration': "잘못된 설정입니다.",
        'errors.config_unknown_key': "알 수 없는 설정 키: {key}",
        'errors.config_missing': "설정 파일을 찾을 수 없습니다: {path}",
        'errors.config_invalid': "설정 파일 {path}이(가) 잘못되었습니다: {error}",
        'errors.config_state_dir': "상태 디렉토리는 절대 경로여야 합니다: {path}",
        'errors.config_log_level': "잘못된 로그 수준: {value}",
        'errors.config_log_format': "잘못된 로그 형식: {value}",
        'errors.path_empty': "{what} 경로가 비어 있습니다.",
        'errors.path_null_byte': "{what} 경로에 널 바이트가 포함되어 있습니다.",
        'errors.path_not_absolute': "{what} 경로는 절대 경로여야 합니다: {path}",
        'errors.path_traversal': "{what} 경로에 '..'을 사용할 수 없습니다: {path}",
        'errors.device_not_in_dev': "장치 경로는 /dev/ 아래에 있어야 합니다: {path}",
        'errors.mapper_name_length': "매퍼 이름은 1~{max}자여야 합니다: {name}",
        'errors.mapper_name_prefix': "매퍼 이름은 'luks-'로 시작해야 합니다: {name}",
        'errors.mapper_name_chars': "매퍼 이름에 허용되지 않는 문자가 있습니다: {name}",
        'errors.fs_type_invalid': "잘못된 파일시스템 유형: {fs_type}",
        'errors.fs_type_unsupported': "지원되지 않는 파일시스템 유형 '{fs_type}'. 허용: {allowed}",
        'errors.mount_options_null_byte': "마운트 옵션에 널 바이트가 포함되어 있습니다.",
        'errors.mount_options_too_long': "마운트 옵션이 너무 깁니다 (최대 {max}자).",
        'errors.mount_option_forbidden_chars': "마운트 옵션에 허용되지 않는 문자가 있습니다: {opt}",
        'warnings.state_persist_failed': "마운트되었지만 마운트 기록을 저장하지 못했습니다 ({error}). luks-umount는 마운트 테이블을 사용합니다.",
        'warnings.lock_failed': "마운트 해제되었지만 LUKS 장치 {name}을(를) 잠그지 못했습니다: {error}",
        'warnings.state_remove_failed': "마운트 해제되었지만 {path}의 마운트 기록을 삭제하지 못했습니다: {error}",
        'cli.error': "오류: {message}",
        'cli.warning': "경고: {message}",
        'mount.enter_passphrase': "암호를 입력하세요",
        'mount.opening': "LUKS 장치 여는 중: {path}",
        'mount.using_mapper': "사용할 매퍼: {name}",
        'mount.already_unlocked': "장치가 이미 {name}(으)로 잠금 해제되어 있어 재사용합니다.",
        'mount.success': "LUKS 볼륨이 성공적으로 마운트되었습니다!",
        'mount.label_device': "  장치:        {path}",
        'mount.label_mount_point': "  마운트 지점: {path}",
        'mount.label_mapper': "  매퍼:        /dev/mapper/{name}",
        'mount.label_security': "  보안:        nosuid, nodev",
        'mount.label_mode_readonly': "  모드:        읽기 전용",
        'mount.label_mode_readwrite': "  모드:        읽기/쓰기",
        'umount.unmounting': "마운트 해제 중: {path}",
        'umount.resolved_from_mount_table': "마운트 기록이 없어 마운트 테이블에서 {name}을(를) 찾았습니다.",
        'umount.success': "LUKS 볼륨이 성공적으로 마운트 해제되고 잠겼습니다!",
        'umount.label_mount_point': "  마운트 지점: {path}",
        'umount.label_mapper': "  매퍼:        {name}",
        'status.empty': "관리 중인 LUKS 마운트가 없습니다.",
        'status.header_mount_point': "마운트 지점",
        'status.header_device': "장치",
        'status.header_mapper': "매퍼",
        'status.header_mode': "모드",
        'status.header_state': "상태",
        'status.header_since': "시작",
        'status.live': "활성",
        'status.stale': "오래됨",
        'status.ro': "읽기",
        'status.rw': "읽기/쓰기",
        'status.total': "합계: {count}개 기록",
        'cleanup.none': "오래된 기록이 없습니다.",
        'cleanup.removed': "오래된 기록 삭제: {path} ({name})",
    },
    'ja': {
        'errors.unexpected': "予期しないエラー: {error}",
        'errors.already_mounted': "{path} には既に有効な暗号化マウントがあります ({device})。",
        'errors.device_not_luks': "{path} は LUKS デバイスではありません。",
        'errors.device_uuid_invalid': "デバイスが無効な LUKS UUID を返しました: {uuid}",
        'errors.mount_point_creation_failed': "マウントポイント {path} の作成に失敗しました: {error}",
        'errors.mount_point_missing': "マウントポイント {path} が存在しません (--mkdir で作成できます)。",
        'errors.mount_point_not_dir': "マウントポイント {path} はディレクトリではありません。",
        'errors.mount_point_too_long': "マウントポイントのパスが長すぎます: {path}",
        'errors.unlock_failed': "{path} のロック解除に失敗しました: {error}",
        'errors.wrong_passphrase': "{path} のロック解除に失敗しました: パスフレーズが正しくありません。",
        'errors.mapper_collision': "マッパー名 {name} は既に {device} で使用されています。",
        'errors.passphrase_missing': "デバイスのロック解除にはパスフレーズが必要です。",
        'errors.mount_failed': "{path} のマウントに失敗しました: {error}。デバイスは再ロックされました。",
        'errors.mount_failed_rollback': "{path} のマウントに失敗しました: {error}。デバイスの再ロックにも失敗しました: {rollback_error}",
        'errors.not_mounted': "{path} は luksctl が管理するマウント済み LUKS ボリュームではありません。",
        'errors.unmount_failed': "{path} のアンマウントに失敗しました: {error}",
        'errors.store_unavailable': "状態ディレクトリ {path} を使用できません: {error}",
        'errors.record_not_found': "{path} の記録が見つかりません。",
        'errors.invalid_input': "入力が無効です。",
        'errors.must_be_root': "このプログラムは root で実行する必要があります。",
        'errors.configuration': "設定が無効です。",
        'errors.config_unknown_key': "不明な設定キー: {key}",
        'errors.config_missing': "設定ファイルが見つかりません: {path}",
        'errors.config_invalid': "設定ファイル {path} が無効です: {error}",
        'errors.config_state_dir': "状態ディレクトリは絶対パスである必要があります: {path}",
        'errors.config_log_level': "無効なログレベル: {value}",
        'errors.config_log_format': "無効なログ形式: {value}",
        'errors.path_empty': "{what} のパスが空です。",
        'errors.path_null_byte': "{what} のパスに NULL バイトが含まれています。",
        'errors.path_not_absolute': "{what} のパスは絶対パスである必要があります: {path}",
        'errors.path_traversal': "{what} のパスに '..' は使用できません: {path}",
        'errors.device_not_in_dev': "デバイスパスは /dev/ 以下である必要があります: {path}",
        'errors.mapper_name_length': "マッパー名は 1〜{max} 文字である必要があります: {name}",
        'errors.mapper_name_prefix': "マッパー名は 'luks-' で始まる必要があります: {name}",
        'errors.mapper_name_chars': "マッパー名に使用できない文字が含まれています: {name}",
        'errors.fs_type_invalid': "無効なファイルシステムタイプ: {fs_type}",
        'errors.fs_type_unsupported': "サポートされていないファイルシステムタイプ '{fs_type}'。使用可能: {allowed}",
        'errors.mount_options_null_byte': "マウントオプションに NULL バイトが含まれています。",
        'errors.mount_options_too_long': "マウントオプションが長すぎます (最大 {max} 文字)。",
        'errors.mount_option_forbidden_chars': "マウントオプションに使用できない文字が含まれています: {opt}",
        'warnings.state_persist_failed': "マウントしましたが、マウント記録を保存できませんでした ({error})。luks-umount はマウントテーブルを使用します。",
        'warnings.lock_failed': "アンマウントしましたが、LUKS デバイス {name} をロックできませんでした: {error}",
        'warnings.state_remove_failed': "アンマウントしましたが、{path} のマウント記録を削除できませんでした: {error}",
        'cli.error': "エラー: {message}",
        'cli.warning': "警告: {message}",
        'mount.enter_passphrase': "パスフレーズを入力してください",
        'mount.opening': "LUKS デバイスを開いています: {path}",
        'mount.using_mapper': "使用するマッパー: {name}",
        'mount.already_unlocked': "デバイスは既に {name} としてロック解除されているため再利用します。",
        'mount.success': "LUKS ボリュームを正常にマウントしました!",
        'mount.label_device': "  デバイス:         {path}",
        'mount.label_mount_point': "  マウントポイント: {path}",
        'mount.label_mapper': "  マッパー:         /dev/mapper/{name}",
        'mount.label_security': "  セキュリティ:     nosuid, nodev",
        'mount.label_mode_readonly': "  モード:           読み取り専用",
        'mount.label_mode_readwrite': "  モード:           読み書き",
        'umount.unmounting': "アンマウント中: {path}",
        'umount.resolved_from_mount_table': "マウント記録がないため、マウントテーブルから {name} を特定しました。",
        'umount.success': "LUKS ボリュームを正常にアンマウントしてロックしました!",
        'umount.label_mount_point': "  マウントポイント: {path}",
        'umount.label_mapper': "  マッパー:         {name}",
        'status.empty': "管理中の LUKS マウントはありません。",
        'status.header_mount_point': "マウントポイント",
        'status.header_device': "デバイス",
        'status.header_mapper': "マッパー",
        'status.header_mode': "モード",
        'status.header_state': "状態",
        'status.header_since': "開始",
        'status.live': "有効",
        'status.stale': "古い",
        'status.ro': "読取",
        'status.rw': "読書",
        'status.total': "合計: {count} 件",
        'cleanup.none': "古い記録はありません。",
        'cleanup.removed': "古い記録を削除しました: {path} ({name})",
    },
}


class _KeepMissing(dict):
    def __missing__(self, key):
        return '{' + key + '}'


def normalize_locale(value: Optional[str]) -> Optional[str]:
    """
    Reduce a POSIX locale string to a supported language code.

    'ko_KR.UTF-8' -> 'ko', 'en-US' -> 'en', 'C' -> None, 'fr_FR' -> None
    """
    if not value:
        return None
    lang = value.replace('-', '_').split('.', 1)[0].split('@', 1)[0].split('_', 1)[0].lower()
    return lang if lang in SUPPORTED_LOCALES else None


def detect_locale(environ: Optional[Mapping[str, str]] = None) -> str:
    """Detect the locale from LC_ALL, LC_MESSAGES and LANG, in that order"""
    environ = os.environ if environ is None else environ
    for var in LOCALE_ENV_VARS:
        value = environ.get(var)
        if value:
            # The first variable that is set decides, as in POSIX
            return normalize_locale(value) or DEFAULT_LOCALE
    return DEFAULT_LOCALE


def translate(key: str, locale: str = DEFAULT_LOCALE, **params) -> str:
    """
    Look up a message and fill in its parameters.

    Falls back to English, then to the key itself. Unknown placeholders are
    left in place.
    """
    catalog = MESSAGES.get(locale) or MESSAGES[DEFAULT_LOCALE]
    template = catalog.get(key) or MESSAGES[DEFAULT_LOCALE].get(key) or key
    return template.format_map(_KeepMissing(params))


class Translator:
    """Translator bound to one locale"""

    def __init__(self, locale: Optional[str] = None):
        self.locale = normalize_locale(locale) or DEFAULT_LOCALE

    def __call__(self, key: str, **params) -> str:
        return translate(key, self.locale, **params)

    def exception(self, exc) -> str:
        """Render a LuksCtlException"""
        return translate(exc.message_key, self.locale, **exc.params)
