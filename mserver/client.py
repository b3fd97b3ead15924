#!/usr/bin/env python
import csv
import json
import os
import sys
from dataclasses import dataclass
from enum import Enum
from types import TracebackType
from typing import Any
from typing import Dict
from typing import List
from typing import Mapping
from typing import Optional
from typing import Sequence
from typing import Union

from mserver import __version__
from mserver.config import config_section
from mserver.config import ConnectionConfig
from mserver.config import read_config
from mserver.document import build_document
from mserver.document import build_list_request
from mserver.document import Envelope
from mserver.document import parse_data_pack
from mserver.lib import error
from mserver.lib.error import log
from mserver.response import interpret
from mserver.response import MServerResponse
from mserver.status import HTTP_ERRORS
from mserver.status import StatusReporter
from mserver.transport import RawResponse
from mserver.transport import Transport

if sys.version_info < (3, 11):
    from typing_extensions import Self
else:
    from typing import Self

"""
The ``Client`` class binds one agenda of one POHODA mServer.  It
keeps a record (``client.data``), turns it into a dataPack, sends it
and reads the answer back::

    client = Client(url="http://192.168.0.1:444", username="admin",
                    password="secret", ico="12345678", agenda="addressbook")
    client.take_data({"identity": {"address": {"company": "ACME"}}})
    if not client.add_to_pohoda():
        print(client.status.errors())

``get_client`` will return a Client object, based either on
parameters, ``POHODA_*`` environmental variables or a configuration
file.
"""

## dataPackItem id used for the single document of an operation
ITEM_SLOT = 2

## mServer greets with this on /status
STATUS_GREETING = "Response from POHODA mServer"


class OperationState(Enum):
    IDLE = "idle"
    BUILDING = "building"
    SENDING = "sending"
    INTERPRETING = "interpreting"
    APPLIED = "applied"
    FAILED = "failed"


## What a client may be initialized from
@dataclass(frozen=True)
class ById:
    id: int


@dataclass(frozen=True)
class ByRecord:
    record: Mapping[str, Any]


@dataclass(frozen=True)
class ByFile:
    path: str


@dataclass(frozen=True)
class ByIdentifier:
    identifier: str


InitValue = Union[ById, ByRecord, ByFile, ByIdentifier]

FILE_SUFFIXES = (".json", ".xml", ".csv")


def resolve_init(value: Any) -> InitValue:
    """
    Classifies a raw initial value.  Integers are record ids, mappings
    are record data, strings ending in .json/.xml/.csv are files, any
    other string is a record code.
    """
    if isinstance(value, (ById, ByRecord, ByFile, ByIdentifier)):
        return value
    if isinstance(value, bool):
        raise TypeError("can't initialize a client from a bool")
    if isinstance(value, int):
        return ById(value)
    if isinstance(value, Mapping):
        return ByRecord(value)
    if isinstance(value, (str, os.PathLike)):
        value = os.fspath(value)
        if value.lower().endswith(FILE_SUFFIXES):
            return ByFile(value)
        return ByIdentifier(value)
    raise TypeError("can't initialize a client from %s" % type(value).__name__)


class Client:
    """
    Talks to mServer on behalf of one agenda.

    Not reentrant: the pending document and the envelope are mutated
    in place, so one Client must not be used from several threads or
    interleaved flows at once.

    Every operation returns a plain success flag.  The lines explaining
    a failure are collected in ``client.status``, the failure itself is
    kept in ``client.last_error`` (see raise_for_status), and the
    interpreted answer is in ``client.response``.  Only a garbled answer
    (ProtocolParseError) and a bad name column path (DataPathError)
    are raised.
    """

    agenda: Optional[str] = None
    key_column: str = "id"
    ## column name, or a path like "identity:address:ico"
    name_column: Optional[str] = None

    def __init__(
        self,
        init: Any = None,
        config: Optional[ConnectionConfig] = None,
        agenda: Optional[str] = None,
        name_column: Optional[str] = None,
        **options: Any,
    ) -> None:
        """
        Args:
          init: initial record id, record data, file or record code, see resolve_init
          config: a ConnectionConfig.  If not given, one is built from the other keyword
            options (url, username, password, ico, instance, application, check_duplicity,
            compress, timeout, ssl_verify_cert, headers, offline, debug, huge_tree)
          agenda: agenda name, i.e. "addressbook" or "invoice"
          name_column: where to find the record's natural key, see filter_to_me
        """
        if config is not None and options:
            raise TypeError("give either a config or connection options, not both")
        if config is None:
            config = ConnectionConfig.from_options(options)
        if agenda:
            self.agenda = agenda
        if name_column:
            self.name_column = name_column

        self.config = config
        self.transport = Transport(config)
        self.status = StatusReporter()
        self.state = OperationState.IDLE
        self.response: Optional[MServerResponse] = None
        self.last_response: Optional[RawResponse] = None
        self.last_error: Optional[error.MServerError] = None
        self.reset()
        if init is not None:
            self.process_init(resolve_init(init))

    def __repr__(self) -> str:
        key = self.get_my_key()
        return "<%s %s%s>" % (
            self.__class__.__name__,
            "%s@" % key if key is not None else "",
            self.agenda,
        )

    def __enter__(self) -> Self:
        return self

    def __exit__(
        self,
        exc_type: Optional[BaseException] = None,
        exc_value: Optional[BaseException] = None,
        traceback: Optional[TracebackType] = None,
    ) -> None:
        self.close()

    def __getstate__(self) -> Dict[str, Any]:
        state = self.__dict__.copy()
        ## neither the session nor lxml trees survive pickling
        del state["transport"]
        state["response"] = None
        return state

    def __setstate__(self, state: Dict[str, Any]) -> None:
        self.__dict__.update(state)
        self.transport = Transport(self.config)

    def close(self) -> None:
        """
        Closes the transport's session object
        """
        self.transport.close()

    def reset(self) -> None:
        """
        Forgets the record and anything pending, and opens a new envelope
        """
        self.data: Dict[str, Any] = {}
        self.request_document = None
        self.new_envelope()

    def new_envelope(self) -> None:
        self.envelope = Envelope(ico=self.config.ico, application=self.config.application)
        log.debug("new envelope %s" % self.envelope.id)

    def log_banner(self, prefix: Optional[str] = None, suffix: Optional[str] = None) -> None:
        url = str(self.config.url)
        if self.config.username:
            url = url.replace("://", "://%s@" % self.config.username, 1)
        log.info(
            "%smServer %s python-mserver v%s%s"
            % (prefix or "", url, __version__, suffix or "")
        )

    ## Configuration

    def configure(self, config: ConnectionConfig) -> None:
        """
        Replaces the connection configuration.  Takes effect from the
        next request on.
        """
        self.config = config
        self.transport.configure(config)

    def set_auth(self, username: Optional[str] = None, password: Optional[str] = None) -> bool:
        if username is not None or password is not None:
            self.configure(
                self.config.with_auth(
                    username if username is not None else self.config.username,
                    password if password is not None else self.config.password,
                )
            )
        return self.config.has_credentials

    def set_instance(self, instance: Optional[str]) -> None:
        self.configure(self.config.with_instance(instance))

    def set_application(self, application: str) -> None:
        self.configure(self.config.with_application(application))

    def set_check_duplicity(self, flag: bool) -> None:
        self.configure(self.config.with_check_duplicity(flag))

    def set_agenda(self, agenda: str) -> None:
        self.agenda = agenda

    ## Record data

    def get_data(self) -> Dict[str, Any]:
        return self.data

    def get_data_value(self, column: str) -> Any:
        return self.data.get(column)

    def get_my_key(self) -> Any:
        return self.data.get(self.key_column)

    def set_my_key(self, key: Any) -> None:
        self.data[self.key_column] = key

    def process_init(self, init: InitValue) -> Any:
        if isinstance(init, ById):
            return self.load_from_pohoda(init.id)
        if isinstance(init, ByRecord):
            return self.take_data(init.record)
        if isinstance(init, ByFile):
            return self.load_from_file(init.path)
        if isinstance(init, ByIdentifier):
            return self.load_from_pohoda(conditions={"code": init.identifier})
        raise TypeError("unexpected init value %r" % (init,))

    def take_data(self, data: Mapping[str, Any]) -> bool:
        """
        Merges data into the record and prepares a document from it
        """
        self.data.update(data)
        return self.create(self.data)

    def create(self, data: Mapping[str, Any]) -> bool:
        """
        Builds the pending document from data.  Returns False if data
        can't be mapped onto the agenda.
        """
        self.state = OperationState.BUILDING
        try:
            self.request_document = build_document(self.agenda, data)
        except error.BuildError as e:
            self.request_document = None
            self.state = OperationState.FAILED
            self.status.add_status_message("%s: %s" % (self.agenda, e.reason), "error")
            return False
        return True

    def load_from_file(self, path: str) -> bool:
        suffix = os.path.splitext(path)[1].lower()
        if suffix == ".json":
            with open(path, "rb") as f:
                loaded = json.load(f)
            records = loaded if isinstance(loaded, list) else [loaded]
        elif suffix == ".csv":
            with open(path, newline="", encoding="utf-8") as f:
                records = list(csv.DictReader(f))
        elif suffix == ".xml":
            with open(path, "rb") as f:
                body = f.read()
            try:
                records = parse_data_pack(body, self.agenda)
            except error.ProtocolParseError:
                records = interpret(body, huge_tree=self.config.huge_tree).get_agenda_data(
                    self.agenda
                )
        else:
            raise ValueError("don't know how to read %s" % path)
        if not records:
            self.status.add_status_message("no record found in %s" % path, "warning")
            return False
        return self.take_data(records[0])

    def filter_to_me(self) -> Dict[str, Any]:
        """
        A filter selecting the remote record this client holds.

        With a name column like "identity:address:ico" the path is
        followed into the record and the filter is built from the last
        segment, i.e. {"ico": "12345678"}.  Without a name column the
        key column is used, i.e. {"id": 42}.
        """
        if self.name_column:
            if ":" in self.name_column:
                data: Any = self.data
                for key in self.name_column.split(":"):
                    if isinstance(data, Mapping) and key in data:
                        data = data[key]
                    else:
                        raise error.DataPathError(
                            reason="Data Path %s does not exist" % self.name_column
                        )
                return {key: data}
            if self.name_column not in self.data:
                raise error.DataPathError(
                    reason="Column %s does not exist" % self.name_column
                )
            return {self.name_column: self.data[self.name_column]}
        if self.get_my_key() is None:
            raise error.DataPathError(reason="record has no %s" % self.key_column)
        return {self.key_column: self.get_my_key()}

    ## Operations

    def add_to_pohoda(self, data: Optional[Mapping[str, Any]] = None) -> bool:
        """
        Inserts the pending record into POHODA.  On success the id
        mServer produced becomes the record's key.
        """
        if data and not self.take_data(data):
            return False
        if self.request_document is None:
            self.status.add_status_message("nothing to add", "error")
            return False
        self.request_document.mark_action("add")
        self.envelope.add_document(ITEM_SLOT, self.request_document)
        result = self.commit()
        if result and self.response is not None:
            for details in self.response.produced_details:
                if details.get("id") is not None:
                    self.set_my_key(details["id"])
                    break
        return result

    def update_in_pohoda(
        self,
        data: Optional[Mapping[str, Any]] = None,
        filter: Optional[Mapping[str, Any]] = None,
    ) -> bool:
        """
        Updates the remote record selected by filter, or by
        filter_to_me() when no filter is given.
        """
        if data and not self.take_data(data):
            return False
        if self.request_document is None:
            self.status.add_status_message("nothing to update", "error")
            return False
        self.request_document.mark_action("update", filter or self.filter_to_me())
        self.envelope.add_document(ITEM_SLOT, self.request_document)
        return self.commit()

    def delete_from_pohoda(self, filter: Optional[Mapping[str, Any]] = None) -> bool:
        try:
            document = build_document(self.agenda, {})
        except error.BuildError as e:
            self.status.add_status_message("%s: %s" % (self.agenda, e.reason), "error")
            return False
        document.mark_action("delete", filter or self.filter_to_me())
        self.envelope.add_document(ITEM_SLOT, document)
        return self.commit()

    def get_columns_from_pohoda(
        self,
        columns: Sequence[str] = ("id",),
        conditions: Optional[Mapping[str, Any]] = None,
    ) -> Optional[List[Dict[str, Any]]]:
        """
        Reads records of the agenda.

        Args:
          columns: fields to keep in every record, a single name
            may be given as a string, "*" keeps them all
          conditions: filter, i.e. {"id": 42} or {"ico": "12345678"}

        Returns:
          list of records, or None if the request failed
        """
        try:
            request = build_list_request(self.agenda, conditions)
        except error.BuildError as e:
            self.status.add_status_message("%s: %s" % (self.agenda, e.reason), "error")
            return None
        self.envelope.add_document(ITEM_SLOT, request)
        if not self.commit():
            return None
        if self.response is None:
            ## offline
            return []
        records = self.response.get_agenda_data(self.agenda)
        if isinstance(columns, str):
            columns = [columns]
        if columns and "*" not in columns:
            records = [{c: r[c] for c in columns if c in r} for r in records]
        return records

    def load_from_pohoda(
        self, phid: Optional[int] = None, conditions: Optional[Mapping[str, Any]] = None
    ) -> Any:
        """
        Fetches one record and takes it as the client's own.  Returns
        the record key, or None if nothing was found.
        """
        if conditions is None:
            conditions = {} if phid is None else {"id": phid}
        records = self.get_columns_from_pohoda(["*"], conditions)
        if not records:
            return None
        return self.get_my_key() if self.take_data(records[0]) else None

    def commit(self) -> bool:
        """
        Sends the envelope to /xml
        """
        return self.perform_request("/xml")

    def send_request(self, request: Union[str, bytes]) -> str:
        """
        Sends a ready made dataPack and returns mServer's raw answer,
        decoded as its XML declaration says
        """
        self.perform_request("/xml", body=request)
        return self.last_response.text

    def is_online(self) -> bool:
        """
        Probes /status.  Cheaper than a real request, but only says the
        server is up, not that the credentials work.
        """
        if self.config.offline:
            return False
        raw = self.transport.send("/status", "GET")
        self.last_response = raw
        if raw.error:
            log.debug("mServer is not reachable: %s" % raw.error)
        return raw.status == 200 and STATUS_GREETING.encode("ascii") in raw.body

    def perform_request(
        self,
        url_suffix: str = "",
        method: str = "POST",
        body: Union[str, bytes, None] = None,
    ) -> bool:
        """
        Sends body, or the current envelope, and evaluates the answer.
        Status messages of earlier requests are dropped first.

        Args:
          url_suffix: "http..." is taken as is, "/..." is appended to the
            configured url, anything else means the configured url
          method: HTTP method

        Returns:
          True if mServer accepted the request
        """
        if body is None:
            body = self.envelope.serialize()
        ## sending closes the envelope
        self.new_envelope()
        self.state = OperationState.SENDING
        self.response = None
        self.last_error = None
        self.status.clear()
        self.last_response = self.transport.send(url_suffix, method, body)
        return self.process_response(self.last_response)

    def process_response(self, raw: RawResponse) -> bool:
        if raw.skipped:
            self.state = OperationState.APPLIED
            return True

        if raw.error:
            self.status.add_status_message(
                "Transport Error (HTTP %d): %s" % (raw.status, raw.error), "error"
            )
            self.last_error = error.TransportError(url=raw.url, reason=raw.error)
            self.state = OperationState.FAILED
            return False

        if raw.status in HTTP_ERRORS:
            line = self.status.report(raw.status)
            self.last_error = error.HttpStatusError(
                url=raw.url, reason=line, status=raw.status
            )
            self.state = OperationState.FAILED
            return False

        self.state = OperationState.INTERPRETING
        try:
            self.response = interpret(raw.body, huge_tree=self.config.huge_tree)
        except error.ProtocolParseError as e:
            e.url = raw.url
            self.status.add_status_message(str(e), "error")
            self.last_error = e
            self.state = OperationState.FAILED
            raise

        self.status.report(raw.status, self.response)
        if self.response.ok:
            self.state = OperationState.APPLIED
            return True
        self.last_error = error.ApplicationError(
            url=raw.url,
            reason=self.response.note or "request refused",
            messages=self.response.messages,
        )
        self.state = OperationState.FAILED
        return False

    def raise_for_status(self) -> None:
        """
        Raises the error of the last operation, if it failed
        """
        if self.last_error is not None:
            raise self.last_error


def get_client(
    check_config_file: bool = True,
    config_file: Optional[str] = None,
    config_section_name: Optional[str] = None,
    environment: bool = True,
    **config_data: Any,
) -> Optional[Client]:
    """
    This function will yield a Client object.  It will not try to
    connect.  It will read configuration from various sources,
    dependent on the parameters given, in this order:

    * Data from the parameters given
    * Environment variables prepended with `POHODA_`, like `POHODA_URL`, `POHODA_USERNAME`, `POHODA_PASSWORD`, `POHODA_ICO`.
    * `POHODA_CONFIG_FILE` and `POHODA_CONFIG_SECTION` will be honored if environment is set
    * Configuration file, where keys are prepended with `pohoda_`
    """
    if config_data:
        return Client(**config_data)

    if environment:
        conf = {}
        for conf_key in (
            x
            for x in os.environ
            if x.startswith("POHODA_") and not x.startswith("POHODA_CONFIG")
        ):
            conf[conf_key[7:].lower()] = os.environ[conf_key]
        if conf:
            return Client(**conf)
        if not config_file:
            config_file = os.environ.get("POHODA_CONFIG_FILE")
        if not config_section_name:
            config_section_name = os.environ.get("POHODA_CONFIG_SECTION")

    if check_config_file:
        cfg = read_config(config_file)
        if cfg:
            section = config_section(cfg, config_section_name or "default")
            conn_params = {}
            for k in section:
                if k.startswith("pohoda_") and section[k]:
                    conn_params[k[7:]] = section[k]
            if conn_params:
                return Client(**conn_params)
    return None
