"""
Shared fixtures: in-memory sockets and a scripted FTP server on 127.0.0.1
"""

import socket
import threading
import time

import pytest

from ftpclient.core.connection import ControlConnection


class FakeSocket:
    """Replays scripted bytes and records everything sent"""

    def __init__(self, incoming=b'', peer=('127.0.0.1', 21), local=('127.0.0.1', 40000),
                 family=socket.AF_INET):
        self.incoming = bytearray(incoming)
        self.sent = bytearray()
        self.urgent = bytearray()
        self.peer = peer
        self.local = local
        self.family = family
        self.timeout = None
        self.close_calls = 0

    def feed(self, data):
        self.incoming.extend(data)

    def settimeout(self, timeout):
        self.timeout = timeout

    def getpeername(self):
        return self.peer

    def getsockname(self):
        return self.local

    def sendall(self, data, flags=0):
        if flags & socket.MSG_OOB:
            self.urgent.extend(data)
        else:
            self.sent.extend(data)

    def recv(self, size):
        chunk = bytes(self.incoming[:size])
        del self.incoming[:size]
        return chunk

    def close(self):
        self.close_calls += 1

    @property
    def sent_lines(self):
        return bytes(self.sent).decode('latin-1').split('\r\n')[:-1]


@pytest.fixture
def fake_control():
    """Factory for a ControlConnection wired to a FakeSocket"""
    def make(incoming=b'', **kwargs):
        sock = FakeSocket(incoming, **kwargs)
        control = ControlConnection(timeout=5)
        control.sock = sock
        return control, sock
    return make


class ScriptedFTPServer:
    """
    Minimal single-threaded FTP server for end-to-end tests

    One handle_<VERB>(arg) method per supported command. Files live in
    the files dict; LIST returns the listing lines as given.
    """

    def __init__(self, files=None, listing=None, password='secret'):
        self.files = dict(files or {})
        self.listing = list(listing or [])
        self.password = password
        self.commands = []

        # knobs for individual tests
        self.pasv_host = '127.0.0.1'
        self.data_source = None
        self.chunk_size = 4096
        self.chunk_delay = 0
        self.mtime = '20240102030405'
        self._unique = 0

        self.listener = socket.create_server(('127.0.0.1', 0))
        self.listener.settimeout(0.2)
        self.port = self.listener.getsockname()[1]

        self._conn = None
        self._pasv = None
        self._port_addr = None
        self._rest = 0
        self._rename_from = None
        self._stopped = threading.Event()
        self._thread = threading.Thread(target=self._serve, name="scripted-ftp", daemon=True)

    def start(self):
        self._thread.start()
        return self

    def stop(self):
        self._stopped.set()
        self._thread.join(timeout=5)
        self.listener.close()

    # ===== Session loop =====

    def _serve(self):
        while not self._stopped.is_set():
            try:
                conn, _ = self.listener.accept()
            except socket.timeout:
                continue
            except OSError:
                return
            conn.settimeout(None)
            with conn:
                self._session(conn)

    def _session(self, conn):
        self._conn = conn
        self.reply(220, 'Scripted server ready')
        with conn.makefile('rb') as stream:
            for raw in stream:
                line = raw.decode('latin-1').rstrip('\r\n')
                self.commands.append(line)
                verb, _, arg = line.partition(' ')
                handler = getattr(self, 'handle_' + verb.upper(), None)
                if handler is None:
                    self.reply(502, 'Command not implemented')
                elif handler(arg) is False:
                    break
        self._close_pasv()

    def reply(self, code, text):
        self._conn.sendall(f"{code} {text}\r\n".encode())

    def reply_lines(self, lines):
        self._conn.sendall(''.join(line + '\r\n' for line in lines).encode())

    def _close_pasv(self):
        if self._pasv is not None:
            self._pasv.close()
            self._pasv = None

    def _open_data(self):
        if self._pasv is not None:
            self._pasv.settimeout(5)
            conn, _ = self._pasv.accept()
            self._close_pasv()
            return conn
        address, self._port_addr = self._port_addr, None
        source = (self.data_source, 0) if self.data_source else None
        return socket.create_connection(address, timeout=5, source_address=source)

    def _send_data(self, payload):
        """Send payload on a fresh data connection; False if the client dropped it"""
        try:
            with self._open_data() as data:
                for start in range(0, len(payload), self.chunk_size):
                    if self.chunk_delay:
                        time.sleep(self.chunk_delay)
                    data.sendall(payload[start:start + self.chunk_size])
        except OSError:
            self.reply(426, 'Connection closed; transfer aborted')
            return False
        return True

    def _receive_data(self):
        chunks = []
        with self._open_data() as data:
            while True:
                chunk = data.recv(8192)
                if not chunk:
                    break
                chunks.append(chunk)
        return b''.join(chunks)

    # ===== Commands =====

    def handle_USER(self, arg):
        self.reply(331, 'Password required')

    def handle_PASS(self, arg):
        if arg == self.password:
            self.reply(230, 'Login successful')
        else:
            self.reply(530, 'Login incorrect')

    def handle_SYST(self, arg):
        self.reply(215, 'UNIX Type: L8')

    def handle_TYPE(self, arg):
        self.reply(200, f'Type set to {arg}')

    def handle_PWD(self, arg):
        self.reply(257, '"/home/test" is current directory')

    def handle_CWD(self, arg):
        self.reply(250, 'Directory changed')

    def handle_NOOP(self, arg):
        self.reply(200, 'NOOP ok')

    def handle_FEAT(self, arg):
        self.reply_lines(['211-Features:', ' SIZE', ' MDTM', ' REST STREAM', '211 End'])

    def handle_SIZE(self, arg):
        if arg in self.files:
            self.reply(213, str(len(self.files[arg])))
        else:
            self.reply(550, 'No such file')

    def handle_REST(self, arg):
        self._rest = int(arg)
        self.reply(350, f'Restarting at {arg}')

    def handle_PASV(self, arg):
        self._close_pasv()
        self._pasv = socket.create_server((self.pasv_host, 0))
        port = self._pasv.getsockname()[1]
        host = self.pasv_host.replace('.', ',')
        self.reply(227, f'Entering Passive Mode ({host},{port // 256},{port % 256})')

    def handle_EPSV(self, arg):
        self._close_pasv()
        self._pasv = socket.create_server(('127.0.0.1', 0))
        self.reply(229, f'Entering Extended Passive Mode (|||{self._pasv.getsockname()[1]}|)')

    def handle_PORT(self, arg):
        parts = arg.split(',')
        host = '.'.join(parts[:4])
        port = int(parts[4]) * 256 + int(parts[5])
        self._port_addr = (host, port)
        self.reply(200, 'PORT command successful')

    def handle_RETR(self, arg):
        if arg not in self.files:
            self._close_pasv()
            self.reply(550, 'No such file')
            return
        offset, self._rest = self._rest, 0
        self.reply(150, f'Opening data connection for {arg}')
        if self._send_data(self.files[arg][offset:]):
            self.reply(226, 'Transfer complete')

    def handle_LIST(self, arg):
        self.reply(150, 'Here comes the directory listing')
        if self._send_data(''.join(line + '\r\n' for line in self.listing).encode()):
            self.reply(226, 'Directory send OK')

    def handle_NLST(self, arg):
        self.reply(150, 'Here comes the name list')
        if self._send_data(''.join(name + '\r\n' for name in sorted(self.files)).encode()):
            self.reply(226, 'Directory send OK')

    def handle_STOR(self, arg):
        self.reply(150, f'Ok to send data for {arg}')
        self.files[arg] = self._receive_data()
        self.reply(226, 'Transfer complete')

    def handle_APPE(self, arg):
        self.reply(150, f'Ok to append to {arg}')
        self.files[arg] = self.files.get(arg, b'') + self._receive_data()
        self.reply(226, 'Transfer complete')

    def handle_STOU(self, arg):
        self._unique += 1
        name = f'upload.{self._unique}'
        self.reply(150, f'FILE: {name}')
        self.files[name] = self._receive_data()
        self.reply(226, 'Transfer complete')

    def handle_MDTM(self, arg):
        if arg in self.files:
            self.reply(213, self.mtime)
        else:
            self.reply(550, 'No such file')

    def handle_DELE(self, arg):
        if self.files.pop(arg, None) is None:
            self.reply(550, 'No such file')
        else:
            self.reply(250, 'File deleted')

    def handle_RNFR(self, arg):
        if arg in self.files:
            self._rename_from = arg
            self.reply(350, 'Ready for RNTO')
        else:
            self.reply(550, 'No such file')

    def handle_RNTO(self, arg):
        self.files[arg] = self.files.pop(self._rename_from)
        self._rename_from = None
        self.reply(250, 'Rename successful')

    def handle_MKD(self, arg):
        self.reply(257, f'"{arg}" created')

    def handle_QUIT(self, arg):
        self.reply(221, 'Goodbye')
        return False


UNIX_LISTING = [
    'total 12',
    'drwxr-xr-x   2 ftp      ftp          4096 Mar  3 12:01 pub',
    '-rw-r--r--   1 ftp      ftp            12 Jan  5  2020 hello.txt',
    'lrwxrwxrwx   1 ftp      ftp             3 Jan  5  2020 latest -> pub',
]


@pytest.fixture
def ftp_server():
    server = ScriptedFTPServer(
        files={'hello.txt': b'Hello, FTP!\r\nSecond line\r\n'},
        listing=UNIX_LISTING,
    ).start()
    yield server
    server.stop()
