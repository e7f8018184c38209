"""Main module for gphoto-cli."""

import argparse
import logging
import signal
import sys
import threading
from datetime import timedelta
from pathlib import Path
from typing import Callable, List, Optional

from tabulate import tabulate

from gphoto_cli import __version__
from gphoto_cli.config import (
    OOB_REDIRECT_URI,
    AppConfig,
    get_config_path,
    get_token_path,
    load_config,
    mask_string,
    save_config,
)
from gphoto_cli.models import (
    ApiError,
    AuthExchangeError,
    AuthMethod,
    ConfigurationError,
    Credential,
    GooglePhotosError,
    NetworkError,
    OperationCancelledError,
    SelectionTimeoutError,
    TokenNotFoundError,
)
from gphoto_cli.picker import MediaItem, PickerSessionClient
from gphoto_cli.utils.ascii_art import DEFAULT_WIDTH, MIN_WIDTH, render_file
from gphoto_cli.utils.auth import AuthFlowEngine, describe_credential
from gphoto_cli.utils.file_utils import (
    cleanup_older_than,
    download,
    get_default_output_dir,
    get_file_info,
    get_scratch_dir,
    open_with_default_viewer,
    output_filename,
    scratch_path,
)
from gphoto_cli.utils.media_urls import high_res_url, thumbnail_url
from gphoto_cli.utils.token_store import TokenStore

logger = logging.getLogger(__name__)

THUMBNAIL_SIZE = (800, 600)
SCRATCH_MAX_AGE = timedelta(hours=1)


class PhotoPickerApp:
    """Wires authentication, picker sessions and downloads for one invocation."""

    def __init__(
        self,
        config: AppConfig,
        token_store: TokenStore,
        cancel_event: Optional[threading.Event] = None,
        port: Optional[int] = None,
        client_factory: Callable[[str], PickerSessionClient] = PickerSessionClient,
    ):
        """Initialize the app.

        Args:
            config: OAuth client configuration
            token_store: Credential cache
            cancel_event: Set to abort long waits
            port: Callback port override for the local server flow
            client_factory: Builds the picker client from an access token
        """
        self.config = config
        self.token_store = token_store
        self.cancel_event = cancel_event or threading.Event()
        self.auth = AuthFlowEngine(
            config, token_store=token_store, cancel_event=self.cancel_event, port=port
        )
        self.client_factory = client_factory
        self.credential: Optional[Credential] = None

    def authenticate(self) -> Credential:
        """Load or acquire the bearer credential."""
        self.credential = self.auth.get_credential()
        return self.credential

    def select_media_items(self) -> List[MediaItem]:
        """Create a picker session, wait for the user and return the picked items."""
        credential = self.credential or self.authenticate()
        client = self.client_factory(credential.access_token)

        print("Creating Google Photos Picker session...")
        session = client.create_session()
        print(f"Open Google Photos Picker:\n{session.picker_uri}\n")
        print("Open the URL above in your browser and select photos...")

        try:
            client.wait_for_selection(session.name, cancel_event=self.cancel_event)
            print("Retrieving selected photos...")
            return client.list_media_items(session.name)
        finally:
            client.delete_session(session.name)

    def run_picker(self) -> List[MediaItem]:
        """Pick photos and print their metadata."""
        items = self.select_media_items()
        if not items:
            print("No photos were selected.")
            return items

        print(f"Selected photos ({len(items)}):\n")
        print(tabulate(
            [self._summary_row(i, item) for i, item in enumerate(items, 1)],
            headers=["#", "Filename", "Type", "Created", "Size", "Camera", "Settings"],
            tablefmt="psql",
        ))
        for i, item in enumerate(items, 1):
            logger.debug("%d. %s URL: %s", i, item.id, item.media_file.base_url)
        return items

    @staticmethod
    def _summary_row(index: int, item: MediaItem) -> list:
        meta = item.media_file.metadata
        photo = meta.photo_metadata
        camera = f"{meta.camera_make} {meta.camera_model}".strip()
        settings = ""
        if photo.focal_length > 0:
            settings = (
                f"f/{photo.aperture_f_number:.1f}, {int(photo.focal_length)}mm, "
                f"ISO{photo.iso_equivalent}, {photo.exposure_time}"
            )
        return [
            index,
            item.media_file.filename,
            f"{item.type} ({item.media_file.mime_type})",
            item.create_time,
            f"{meta.width}x{meta.height}",
            camera,
            settings,
        ]

    def download_items(
        self, items: List[MediaItem], output_dir: Path, thumbnail: bool = False
    ) -> List[Path]:
        """Download items to ``output_dir``; a failed item does not stop the rest.

        Returns:
            Paths of the files that were written
        """
        output_dir.mkdir(parents=True, exist_ok=True)
        access_token = self.credential.access_token
        saved = []

        for i, item in enumerate(items, 1):
            self._check_cancelled(f"Download cancelled after {len(saved)} of {len(items)} photos")
            print(f"{i}/{len(items)}: {item.media_file.filename}")
            base_url = item.media_file.base_url
            url = thumbnail_url(base_url, *THUMBNAIL_SIZE) if thumbnail else high_res_url(base_url)
            path = output_dir / output_filename(
                item.media_file.filename, item.id, item.media_file.mime_type
            )
            try:
                written = download(url, access_token, path)
            except (GooglePhotosError, OSError) as e:
                print(f"   Error: {e}")
                continue
            print(f"   Downloaded {written} bytes: {path}")
            saved.append(path)

        return saved

    def _check_cancelled(self, message: str) -> None:
        if self.cancel_event.is_set():
            raise OperationCancelledError(message)

    def run_download(self, output_dir: Optional[Path] = None, thumbnail: bool = False) -> List[Path]:
        """Pick photos and download them."""
        items = self.select_media_items()
        if not items:
            print("No photos were selected.")
            return []

        output_dir = output_dir or get_default_output_dir()
        print(f"Download directory: {output_dir}")
        print(f"Downloading {len(items)} selected photos...\n")
        saved = self.download_items(items, output_dir, thumbnail=thumbnail)
        print(f"\nDownloaded {len(saved)}/{len(items)} photos to {output_dir}")
        return saved

    def run_view(self, width: int = DEFAULT_WIDTH, open_viewer: bool = False) -> List[Path]:
        """Pick photos, fetch thumbnails to the scratch directory and preview them."""
        scratch_dir = get_scratch_dir()
        removed = cleanup_older_than(scratch_dir, SCRATCH_MAX_AGE)
        logger.debug("Removed %d stale preview files from %s", removed, scratch_dir)

        items = self.select_media_items()
        if not items:
            print("No photos were selected.")
            return []

        previews = []
        for item in items:
            self._check_cancelled("Preview cancelled")
            path = scratch_path(scratch_dir, item.media_file.filename)
            url = thumbnail_url(item.media_file.base_url, *THUMBNAIL_SIZE)
            try:
                download(url, self.credential.access_token, path)
            except (GooglePhotosError, OSError) as e:
                print(f"   Error downloading {item.media_file.filename}: {e}")
                continue

            print(f"ASCII Preview of: {item.media_file.filename}")
            print(render_file(path, width))
            info = get_file_info(path)
            if info:
                print(f"Saved preview: {info.path} ({info.size} bytes)")
            if open_viewer:
                open_with_default_viewer(path)
            previews.append(path)
        return previews


def run_setup(config_path: Path, prompt: Callable[[str], str] = input) -> AppConfig:
    """Interactive setup of OAuth client credentials."""
    print("gphoto-cli setup")
    print("=" * 37)
    print()
    print("Google Cloud Console setup is required:")
    print("1. Open Google Cloud Console (https://console.cloud.google.com/)")
    print("2. Create a project or select an existing one")
    print("3. Under APIs & Services > Credentials create an 'OAuth 2.0 Client ID'")
    print("   - Application type: Desktop application")
    print("   - Authorized redirect URI: http://localhost:8080/auth/callback")
    print("4. Note the client ID and client secret")
    print()
    prompt("Press Enter when ready...")

    config = AppConfig()
    config.google_client_id = prompt("Google Client ID: ").strip()
    if not config.google_client_id:
        raise ConfigurationError("Client ID is required")

    config.google_client_secret = prompt("Google Client Secret: ").strip()
    if not config.google_client_secret:
        raise ConfigurationError("Client Secret is required")

    print()
    print("Select an authentication method:")
    print("1. Automatic (recommended): local server")
    print("2. Manual: paste the authorization code")
    choice = prompt("Choice (1 or 2) [1]: ").strip()
    if choice == "2":
        config.auth_method = AuthMethod.MANUAL_CODE.value
        config.google_redirect_uri = OOB_REDIRECT_URI
    else:
        if choice not in ("", "1"):
            print("Invalid choice, using automatic authentication.")
        config.auth_method = AuthMethod.LOCAL_SERVER.value

    save_config(config, config_path)
    print()
    print("Setup complete!")
    print(f"Config file: {config_path}")
    print("Access Google Photos with: gphoto-cli picker")
    return config


def show_config(config: AppConfig, config_path: Path, token_store: TokenStore) -> None:
    """Print the configuration with secrets masked."""
    print(f"Config file: {config_path}\n")
    rows = [
        ["Google Client ID", mask_string(config.google_client_id)],
        ["Google Client Secret", mask_string(config.google_client_secret)],
        ["Redirect URI", config.google_redirect_uri],
        ["Auth method", config.auth_method],
        ["OAuth scope", config.google_scope],
    ]
    try:
        token = describe_credential(token_store.load())
        rows.append(["Token", f"stored (expires {token['expiry'] or 'unknown'})"])
    except TokenNotFoundError:
        rows.append(["Token", "not stored"])
    print(tabulate(rows, tablefmt="plain"))


def reset_config(config_path: Path, token_store: TokenStore) -> None:
    """Delete the configuration and the stored token."""
    config_path.unlink(missing_ok=True)
    try:
        token_store.delete()
    except OSError as e:
        print(f"Warning: failed to remove token file: {e}")
    print("Configuration reset")
    print("To set up again run: gphoto-cli setup")


def _preview_width(value: str) -> int:
    width = int(value)
    if width < MIN_WIDTH:
        raise argparse.ArgumentTypeError(f"width must be at least {MIN_WIDTH}")
    return width


def parse_arguments(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        prog="gphoto-cli", description="Google Photos CLI Tool"
    )

    # Global arguments
    parser.add_argument("--verbose", "-v", action="store_true", help="Show debug output")
    parser.add_argument(
        "--port", type=int, default=None,
        help="Local callback port (default: from redirect URI, 0 for any free port)",
    )

    subparsers = parser.add_subparsers(dest="command", help="Commands", required=True)

    subparsers.add_parser("version", help="Print the version number")
    subparsers.add_parser("setup", help="Interactive setup for Google OAuth credentials")

    config_parser = subparsers.add_parser("config", help="Manage configuration")
    config_sub = config_parser.add_subparsers(dest="config_command", required=True)
    config_sub.add_parser("show", help="Show current configuration")
    config_sub.add_parser("reset", help="Reset configuration and authentication")

    subparsers.add_parser(
        "picker", help="Use Google Photos Picker to select photos from your library"
    )

    download_parser = subparsers.add_parser(
        "download", help="Download selected photos to a local directory"
    )
    download_parser.add_argument(
        "--output", "-o", type=Path, default=None,
        help="Output directory (default: ~/gphoto-downloads)",
    )
    download_parser.add_argument(
        "--thumbnail", action="store_true",
        help="Download thumbnail size instead of full resolution",
    )

    view_parser = subparsers.add_parser(
        "view", help="Select photos and preview them in the terminal"
    )
    view_parser.add_argument(
        "--width", type=_preview_width, default=DEFAULT_WIDTH, help="Preview width in characters"
    )
    view_parser.add_argument(
        "--open", dest="open_viewer", action="store_true",
        help="Also open each photo in the default image viewer",
    )

    return parser.parse_args(argv)


def _install_cancel_handler(cancel_event: threading.Event) -> None:
    """First Ctrl-C cancels pending waits; a second one interrupts."""

    def handler(signum, frame):
        cancel_event.set()
        signal.signal(signal.SIGINT, signal.default_int_handler)
        print("\nCancelling... press Ctrl-C again to abort", flush=True)

    signal.signal(signal.SIGINT, handler)


def _next_step(error: GooglePhotosError) -> str:
    if isinstance(error, ConfigurationError):
        return "Please run setup first: gphoto-cli setup"
    if isinstance(error, AuthExchangeError):
        return "Check your client ID/secret with 'gphoto-cli config show', then try again."
    if isinstance(error, SelectionTimeoutError):
        return "Run the command again and finish selecting photos within 10 minutes."
    if isinstance(error, OperationCancelledError):
        return "Run the command again when ready."
    if isinstance(error, NetworkError):
        return "Check your internet connection and try again."
    if isinstance(error, ApiError) and error.status_code in (401, 403):
        return "Your token may be invalid. Run 'gphoto-cli config reset' and set up again."
    return "Run again with --verbose for details."


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the gphoto-cli CLI."""
    args = parse_arguments(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    if args.command == "version":
        print(f"gphoto-cli v{__version__}")
        return 0

    config_path = get_config_path()
    token_store = TokenStore(get_token_path())

    try:
        if args.command == "setup":
            run_setup(config_path)
            return 0

        config = load_config(config_path)

        if args.command == "config":
            if args.config_command == "show":
                show_config(config, config_path, token_store)
            else:
                reset_config(config_path, token_store)
            return 0

        config.require_credentials()
        cancel_event = threading.Event()
        _install_cancel_handler(cancel_event)
        app = PhotoPickerApp(config, token_store, cancel_event=cancel_event, port=args.port)
        app.authenticate()

        if args.command == "picker":
            app.run_picker()
        elif args.command == "download":
            app.run_download(args.output, thumbnail=args.thumbnail)
        elif args.command == "view":
            app.run_view(width=args.width, open_viewer=args.open_viewer)
        return 0

    except GooglePhotosError as e:
        logger.debug("Command failed", exc_info=True)
        print(f"Error: {e}")
        print(_next_step(e))
        return 1
    except KeyboardInterrupt:
        print("\nInterrupted")
        return 130


if __name__ == "__main__":
    sys.exit(main())
