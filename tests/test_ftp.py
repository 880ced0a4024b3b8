"""Tests for the FTP connector."""

import ftplib
import io
import tarfile
from datetime import datetime, timezone
from unittest.mock import MagicMock, patch

import pytest

from gsbt.connector import ConnectError, DownloadError, FTPConnector, ListError
from gsbt.connector.common import ConnectorConfig
from gsbt.connector.ftp import parse_list_line
from gsbt.core.backup import BackupManager

REMOTE_TREE = {
    "/data": [
        (".", {"type": "cdir"}),
        ("..", {"type": "pdir"}),
        ("a.txt", {"type": "file", "size": "10", "modify": "20240101120000"}),
        ("b.log", {"type": "file", "size": "5", "modify": "20240101120000"}),
        ("saves", {"type": "dir"}),
    ],
    "/data/saves": [
        ("world.sav", {"type": "file", "size": "3", "modify": "20240102000000"}),
    ],
}

REMOTE_DATA = {
    "/data/a.txt": b"0123456789",
    "/data/b.log": b"log!!",
    "/data/saves/world.sav": b"sav",
}


def make_ftp_mock(tree=REMOTE_TREE, data=REMOTE_DATA):
    """An ftplib.FTP stand-in serving an in-memory tree over MLSD."""
    ftp = MagicMock()
    ftp.mlsd.side_effect = lambda path, facts=None: iter(tree[path])

    def retrbinary(command, callback):
        path = command.split(" ", 1)[1]
        if path not in data:
            raise ftplib.error_perm(f"550 {path}: No such file")
        callback(data[path])

    ftp.retrbinary.side_effect = retrbinary
    return ftp


class NoMlsdFTP(ftplib.FTP):
    """A real ftplib.FTP that answers like vsftpd: no OPTS MLST, no MLSD."""

    listing = ["-rw-r--r-- 1 ftp ftp   10 Jan 01  2024 a.txt"]

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.sent = []

    def connect(self, host="", port=0, timeout=-999, source_address=None):
        return "220 ready"

    def login(self, user="", passwd="", acct=""):
        return "230 Login successful."

    def sendcmd(self, cmd):
        self.sent.append(cmd)
        if cmd.startswith("OPTS"):
            raise ftplib.error_perm("501 Option not understood.")
        return "200 OK"

    def retrlines(self, cmd, callback=None):
        self.sent.append(cmd)
        if cmd.startswith("MLSD"):
            raise ftplib.error_perm("500 Unknown command.")
        for line in self.listing:
            callback(line)
        return "226 Directory send OK."

    def quit(self):
        return "221 Goodbye."


def ftp_config(**kwargs):
    values = {
        "type": "ftp",
        "host": "ftp.example.com",
        "username": "user",
        "password": "pw",
        "remote_path": "/data",
    }
    values.update(kwargs)
    return ConnectorConfig(**values)


class TestConnect:
    """Tests for FTPConnector.connect."""

    @patch("gsbt.connector.ftp.ftplib.FTP")
    def test_connect_plain(self, mock_ftp_class):
        """Test dial, login and passive mode."""
        ftp = mock_ftp_class.return_value
        connector = FTPConnector(ftp_config())

        connector.connect()

        mock_ftp_class.assert_called_once_with(timeout=30)
        ftp.connect.assert_called_once_with("ftp.example.com", 21)
        ftp.login.assert_called_once_with("user", "pw")
        ftp.set_pasv.assert_called_once_with(True)
        ftp.prot_p.assert_not_called()
        assert connector.is_connected

    @patch("gsbt.connector.ftp.ftplib.FTP_TLS")
    def test_connect_tls(self, mock_tls_class):
        """Test explicit TLS protects the data channel."""
        ftp = mock_tls_class.return_value
        connector = FTPConnector(ftp_config(tls=True, passive=False))

        connector.connect()

        ftp.prot_p.assert_called_once()
        ftp.set_pasv.assert_called_once_with(False)

    @patch("gsbt.connector.ftp.ftplib.FTP")
    def test_dial_failure(self, mock_ftp_class):
        """Test that dial errors become ConnectError."""
        mock_ftp_class.return_value.connect.side_effect = OSError("refused")
        connector = FTPConnector(ftp_config())

        with pytest.raises(ConnectError, match="failed to connect to FTP"):
            connector.connect()
        assert not connector.is_connected

    @patch("gsbt.connector.ftp.ftplib.FTP")
    def test_login_failure_quits(self, mock_ftp_class):
        """Test that a rejected login closes the session."""
        ftp = mock_ftp_class.return_value
        ftp.login.side_effect = ftplib.error_perm("530 Login incorrect")
        connector = FTPConnector(ftp_config())

        with pytest.raises(ConnectError, match="login failed"):
            connector.connect()
        ftp.quit.assert_called_once()
        assert not connector.is_connected

    @patch("gsbt.connector.ftp.ftplib.FTP")
    def test_close_is_idempotent(self, mock_ftp_class):
        """Test that close quits once and can be repeated."""
        ftp = mock_ftp_class.return_value
        connector = FTPConnector(ftp_config())
        connector.connect()

        connector.close()
        connector.close()

        ftp.quit.assert_called_once()
        assert not connector.is_connected


class TestListFiles:
    """Tests for FTPConnector.list_files."""

    @patch("gsbt.connector.ftp.ftplib.FTP")
    def test_recursive_mlsd(self, mock_ftp_class):
        """Test recursive listing with relative paths and no directories."""
        mock_ftp_class.return_value = make_ftp_mock()
        connector = FTPConnector(ftp_config())
        connector.connect()

        files = connector.list_files()

        assert sorted(f.path for f in files) == ["a.txt", "b.log", "saves/world.sav"]
        a = next(f for f in files if f.path == "a.txt")
        assert a.size == 10
        assert a.mod_time == datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)

    @patch("gsbt.connector.ftp.ftplib.FTP")
    def test_patterns_applied(self, mock_ftp_class):
        """Test that include/exclude are applied to the listing."""
        mock_ftp_class.return_value = make_ftp_mock()
        connector = FTPConnector(ftp_config(exclude=["*.log", "saves/"]))
        connector.connect()

        assert [f.path for f in connector.list_files()] == ["a.txt"]

    @patch("gsbt.connector.ftp.ftplib.FTP")
    def test_list_fallback(self, mock_ftp_class):
        """Test falling back to LIST when MLSD is not supported."""
        ftp = mock_ftp_class.return_value
        ftp.mlsd.side_effect = ftplib.error_perm("500 Unknown command")
        listings = {
            "LIST /data": [
                "total 8",
                "drwxr-xr-x 2 ftp ftp 4096 Jan 01 12:00 .",
                "-rw-r--r-- 1 ftp ftp   10 Jan 01  2024 a.txt",
                "drwxr-xr-x 2 ftp ftp 4096 Jan 01  2024 maps",
            ],
            "LIST /data/maps": [
                "-rw-r--r-- 1 ftp ftp   42 Feb 03  2024 island.map",
            ],
        }
        ftp.retrlines.side_effect = lambda cmd, cb: [cb(line) for line in listings[cmd]]
        connector = FTPConnector(ftp_config())
        connector.connect()

        files = connector.list_files()

        assert [(f.path, f.size) for f in files] == [("a.txt", 10), ("maps/island.map", 42)]
        # MLSD is only attempted once
        assert ftp.mlsd.call_count == 1

    @patch("gsbt.connector.ftp.ftplib.FTP")
    def test_list_fallback_on_501(self, mock_ftp_class):
        """Test that a 501 reply to MLSD also switches to LIST."""
        ftp = mock_ftp_class.return_value
        ftp.mlsd.side_effect = ftplib.error_perm("501 Option not understood.")
        ftp.retrlines.side_effect = lambda cmd, cb: cb(
            "-rw-r--r-- 1 ftp ftp   10 Jan 01  2024 a.txt"
        )
        connector = FTPConnector(ftp_config())
        connector.connect()

        assert [f.path for f in connector.list_files()] == ["a.txt"]

    def test_server_without_mlsd(self):
        """Test listing against a server that rejects OPTS and MLSD."""
        with patch("gsbt.connector.ftp.ftplib.FTP", NoMlsdFTP):
            connector = FTPConnector(ftp_config())
            connector.connect()
            ftp = connector._ftp

            files = connector.list_files()

        assert [(f.path, f.size) for f in files] == [("a.txt", 10)]
        assert not any(cmd.startswith("OPTS") for cmd in ftp.sent)
        assert ftp.sent == ["MLSD /data", "LIST /data"]

    @patch("gsbt.connector.ftp.ftplib.FTP")
    def test_list_failure(self, mock_ftp_class):
        """Test that a listing error becomes ListError."""
        ftp = mock_ftp_class.return_value
        ftp.mlsd.side_effect = ftplib.error_perm("550 Permission denied")
        connector = FTPConnector(ftp_config())
        connector.connect()

        with pytest.raises(ListError, match="failed to list /data"):
            connector.list_files()


class TestTransfer:
    """Tests for FTPConnector download and upload."""

    @patch("gsbt.connector.ftp.ftplib.FTP")
    def test_download(self, mock_ftp_class):
        """Test streaming a file into a sink."""
        mock_ftp_class.return_value = make_ftp_mock()
        connector = FTPConnector(ftp_config())
        connector.connect()
        sink = io.BytesIO()

        connector.download("saves/world.sav", sink)

        assert sink.getvalue() == b"sav"

    @patch("gsbt.connector.ftp.ftplib.FTP")
    def test_download_failure(self, mock_ftp_class):
        """Test that transfer errors become DownloadError."""
        mock_ftp_class.return_value = make_ftp_mock()
        connector = FTPConnector(ftp_config())
        connector.connect()

        with pytest.raises(DownloadError, match="missing.txt"):
            connector.download("missing.txt", io.BytesIO())

    @patch("gsbt.connector.ftp.ftplib.FTP")
    def test_upload_creates_directories(self, mock_ftp_class):
        """Test that upload creates parents and ignores existing ones."""
        ftp = mock_ftp_class.return_value
        ftp.mkd.side_effect = [ftplib.error_perm("550 exists"), None, None]
        connector = FTPConnector(ftp_config())
        connector.connect()
        source = io.BytesIO(b"payload")

        connector.upload(source, "saves/slot1/world.sav")

        assert [c.args[0] for c in ftp.mkd.call_args_list] == [
            "/data",
            "/data/saves",
            "/data/saves/slot1",
        ]
        ftp.storbinary.assert_called_once_with("STOR /data/saves/slot1/world.sav", source)


class TestBackupScenario:
    """End to end backup of an FTP server with an exclude rule."""

    @patch("gsbt.connector.ftp.ftplib.FTP")
    def test_excluded_files_are_not_downloaded(self, mock_ftp_class, tmp_path):
        """Test that only a.txt is fetched and archived."""
        tree = {"/data": REMOTE_TREE["/data"][:4]}
        ftp = make_ftp_mock(tree=tree)
        mock_ftp_class.return_value = ftp
        connector = FTPConnector(ftp_config(include=["*"], exclude=["*.log"]))
        manager = BackupManager(tmp_path / "backups")

        archive_path, stats = manager.backup(connector)

        assert stats.files == 1
        assert stats.bytes == 10
        ftp.retrbinary.assert_called_once()
        assert ftp.retrbinary.call_args.args[0] == "RETR /data/a.txt"
        with tarfile.open(archive_path, "r:gz") as tar:
            assert [m.name for m in tar.getmembers() if m.isfile()] == ["a.txt"]
        ftp.quit.assert_called_once()


class TestParseListLine:
    """Tests for parse_list_line function."""

    NOW = datetime(2024, 6, 15, tzinfo=timezone.utc)

    def test_unix_file_with_year(self):
        """Test a file entry with an explicit year."""
        name, size, mtime, is_dir = parse_list_line(
            "-rw-r--r-- 1 ftp ftp 1234 Mar 05  2023 save game.sav", self.NOW
        )
        assert (name, size, is_dir) == ("save game.sav", 1234, False)
        assert mtime == datetime(2023, 3, 5, tzinfo=timezone.utc)

    def test_unix_recent_file(self):
        """Test an entry with a time instead of a year."""
        _, _, mtime, _ = parse_list_line(
            "-rw-r--r-- 1 ftp ftp 1 Jun 10 08:30 a.txt", self.NOW
        )
        assert mtime == datetime(2024, 6, 10, 8, 30, tzinfo=timezone.utc)

    def test_unix_time_in_future_means_last_year(self):
        """Test that a month ahead of now belongs to the previous year."""
        _, _, mtime, _ = parse_list_line(
            "-rw-r--r-- 1 ftp ftp 1 Dec 24 18:00 a.txt", self.NOW
        )
        assert mtime.year == 2023

    def test_unix_directory(self):
        """Test a directory entry."""
        name, _, _, is_dir = parse_list_line(
            "drwxr-xr-x 2 ftp ftp 4096 Jan 01  2024 saves", self.NOW
        )
        assert name == "saves"
        assert is_dir is True

    def test_symlink(self):
        """Test that symlink targets are stripped."""
        name, _, _, _ = parse_list_line(
            "lrwxrwxrwx 1 ftp ftp 7 Jan 01  2024 current -> world1", self.NOW
        )
        assert name == "current"

    def test_dos_format(self):
        """Test DOS style listing lines."""
        name, size, mtime, is_dir = parse_list_line(
            "01-15-24  03:45PM               2048 server.cfg", self.NOW
        )
        assert (name, size, is_dir) == ("server.cfg", 2048, False)
        assert mtime == datetime(2024, 1, 15, 15, 45, tzinfo=timezone.utc)

    def test_dos_directory(self):
        """Test DOS style directory lines."""
        name, size, _, is_dir = parse_list_line(
            "01-15-24  09:00AM       <DIR>          Saves", self.NOW
        )
        assert (name, size, is_dir) == ("Saves", 0, True)

    def test_total_line(self):
        """Test that summary lines are skipped."""
        assert parse_list_line("total 42", self.NOW) is None

    def test_short_line(self):
        """Test that unparsable lines are skipped."""
        assert parse_list_line("garbage", self.NOW) is None
