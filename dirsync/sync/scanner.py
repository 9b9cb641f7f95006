"""Change scanner: searches for changed entries and emits change events."""

from contextlib import closing
from typing import Sequence

import structlog
from pydantic import ValidationError

from dirsync.directory.connection import DirectoryConnection, SearchScope
from dirsync.directory.schema import SchemaTranslator
from dirsync.exceptions import DirectoryError, InvalidArgumentError, TranslationError, TransportError
from dirsync.models.config import AppConfig
from dirsync.models.entry import (
    ConnectorObject,
    DirectoryEntry,
    ObjectClass,
    ObjectClassInfo,
    OperationOptions,
)
from dirsync.sync.acceptance import AcceptancePredicate, make_acceptance_predicate
from dirsync.sync.advancer import WatermarkAdvancer
from dirsync.sync.checkpoint_store import CheckpointStore
from dirsync.sync.handlers import ChangeHandler
from dirsync.sync.models import ChangeEvent, ScanSummary, SyncDeltaType, SyncToken
from dirsync.sync.observers import LoggingScanObserver, ScanObserver
from dirsync.sync.query_builder import (
    CREATE_TIMESTAMP,
    CREATORS_NAME,
    MODIFIERS_NAME,
    MODIFY_TIMESTAMP,
    build_change_filter,
    resolve_since_watermark,
)
from dirsync.sync.watermark import Clock

log = structlog.stdlib.get_logger()


class ChangeScanner:
    """Finds entries changed since a watermark and hands them to a handler.

    Every event of a scan carries the same resume token: the watermark
    captured before the search started. Entries are delivered in the order
    the directory returns them.
    """

    def __init__(
        self,
        connection: DirectoryConnection,
        translator: SchemaTranslator,
        base_context: str,
        acceptance: AcceptancePredicate | None = None,
        excluded_identities: Sequence[str] = (),
        advancer: WatermarkAdvancer | None = None,
        observer: ScanObserver | None = None,
        clock: Clock | None = None,
        modify_timestamp_attribute: str = MODIFY_TIMESTAMP,
        create_timestamp_attribute: str = CREATE_TIMESTAMP,
        modifiers_name_attribute: str = MODIFIERS_NAME,
        creators_name_attribute: str = CREATORS_NAME,
    ):
        """
        Initialize change scanner.

        Args:
            connection: Directory to search
            translator: Resolves descriptors and translates entries
            base_context: DN under which changes are searched (subtree)
            acceptance: Predicate filtering found entries; defaults to the
                        object class and changer-identity check
            excluded_identities: Changer DNs passed to the predicate
            advancer: Watermark state machine; a private one is created if None
            observer: Observability hooks; structured logging if None
            clock: Time source for watermarks
        """
        self._connection = connection
        self._translator = translator
        self._base_context = base_context
        self._acceptance = acceptance or make_acceptance_predicate(
            modifiers_name_attribute, creators_name_attribute
        )
        self._excluded_identities: tuple[str, ...] = tuple(excluded_identities)
        self._clock = clock
        self._advancer = advancer or WatermarkAdvancer(clock=clock)
        self._observer = observer or LoggingScanObserver()
        self._modify_attribute = modify_timestamp_attribute
        self._create_attribute = create_timestamp_attribute
        self._marker_attributes: tuple[str, ...] = (
            modify_timestamp_attribute,
            create_timestamp_attribute,
            modifiers_name_attribute,
            creators_name_attribute,
        )

    @classmethod
    def from_config(
        cls,
        config: AppConfig,
        connection: DirectoryConnection,
        translator: SchemaTranslator,
        checkpoint_store: CheckpointStore | None = None,
        observer: ScanObserver | None = None,
        clock: Clock | None = None,
    ) -> "ChangeScanner":
        """Create a scanner wired from application configuration."""
        return cls(
            connection=connection,
            translator=translator,
            base_context=config.directory.base_context,
            excluded_identities=config.directory.modifiers_names_to_filter_out,
            advancer=WatermarkAdvancer(checkpoint_store=checkpoint_store, clock=clock),
            observer=observer,
            clock=clock,
            modify_timestamp_attribute=config.sync.modify_timestamp_attribute,
            create_timestamp_attribute=config.sync.create_timestamp_attribute,
            modifiers_name_attribute=config.sync.modifiers_name_attribute,
            creators_name_attribute=config.sync.creators_name_attribute,
        )

    @property
    def advancer(self) -> WatermarkAdvancer:
        return self._advancer

    @property
    def base_context(self) -> str:
        return self._base_context

    @property
    def clock(self) -> Clock | None:
        return self._clock

    def resolve_object_class_info(self, object_class: ObjectClass) -> ObjectClassInfo | None:
        """
        Descriptor for the scanned class; None when scanning all classes.

        Raises:
            InvalidArgumentError: If the class has no descriptor
        """
        if object_class.is_all():
            return None
        info = self._translator.find_object_class_info(object_class)
        if info is None:
            raise InvalidArgumentError(f"No definition for object class {object_class}")
        return info

    def attributes_to_get(
        self, info: ObjectClassInfo | None, options: OperationOptions | None = None
    ) -> list[str]:
        """
        Attributes requested from the directory.

        The caller's hint (or the descriptor's attribute list, or all user
        attributes) plus objectClass, the identifier attributes and the change
        markers the acceptance predicate needs.
        """
        if options is not None and options.attributes_to_get is not None:
            requested = list(options.attributes_to_get)
        elif info is not None and info.attributes:
            requested = list(info.attributes)
        else:
            requested = ["*"]

        requested.append("objectClass")
        if info is None:
            requested.extend(self._translator.identifier_attributes())
        else:
            requested.extend(
                a for a in (info.uid_attribute, info.name_attribute) if a.lower() != "dn"
            )
        requested.extend(self._marker_attributes)

        seen: set[str] = set()
        attributes: list[str] = []
        for name in requested:
            if name.lower() not in seen:
                seen.add(name.lower())
                attributes.append(name)
        return attributes

    def scan(
        self,
        object_class: ObjectClass,
        since: SyncToken | None,
        handler: ChangeHandler,
        options: OperationOptions | None = None,
    ) -> ScanSummary:
        """
        Deliver every accepted entry changed at or after ``since``.

        A handler that also subclasses ``SyncTokenHandler`` receives the
        resume token once, after the last event and after the search cursor
        has been closed. Nothing is committed when the scan fails.

        Args:
            object_class: Class to scan, or ``ObjectClass.all()``
            since: Token from the previous cycle; None starts from now
            handler: Receives the change events
            options: Attribute selection hints

        Returns:
            ScanSummary with found and delivered counts

        Raises:
            InvalidArgumentError: Bad token, unknown object class or handler (before any I/O)
            TransportError: Search or iteration failed; carries the filter text
            TranslationError: A found entry could not be translated
        """
        if not isinstance(handler, ChangeHandler):
            raise InvalidArgumentError(
                f"Handler must be a ChangeHandler, got {type(handler).__name__}"
            )

        info = self.resolve_object_class_info(object_class)
        since_watermark = resolve_since_watermark(since, self._clock)
        query = build_change_filter(since_watermark, self._modify_attribute, self._create_attribute)
        filter_text = query.filter_text
        attributes = self.attributes_to_get(info, options)

        # Captured before the search so changes landing mid-scan fall at or
        # after the committed watermark.
        resume_token = self._advancer.capture(
            object_class.name, floor=since_watermark if since is not None else None
        )

        entries_found = 0
        entries_delivered = 0
        try:
            self._advancer.begin_scan()
            self._observer.search_started(object_class.name, self._base_context, filter_text, attributes)

            try:
                cursor = self._connection.search(
                    self._base_context, filter_text, SearchScope.SUBTREE, attributes
                )
                with closing(cursor):
                    for entry in cursor:
                        entries_found += 1
                        self._observer.entry_found(entry)

                        if not self._acceptance(entry, info, self._excluded_identities):
                            self._observer.entry_rejected(entry)
                            continue

                        event = ChangeEvent(
                            delta_type=SyncDeltaType.CREATE_OR_UPDATE,
                            token=resume_token,
                            obj=self._translate(info, entry),
                        )
                        handler.handle(event)
                        entries_delivered += 1
                        self._observer.event_delivered(event)
            except DirectoryError as e:
                raise TransportError(
                    f"Error searching for changes ({filter_text}): {e}", filter_text=filter_text
                ) from e

            summary = ScanSummary(
                object_class=object_class.name,
                base_context=self._base_context,
                filter_text=filter_text,
                token=resume_token,
                entries_found=entries_found,
                entries_delivered=entries_delivered,
            )
            self._advancer.commit(handler, entries_found, entries_delivered)
        except BaseException as e:
            self._advancer.abort(e)
            self._observer.scan_failed(object_class.name, filter_text, e)
            raise

        self._observer.scan_completed(summary)
        return summary

    def _translate(self, info: ObjectClassInfo | None, entry: DirectoryEntry) -> ConnectorObject:
        try:
            return self._translator.to_connector_object(info, entry)
        except TranslationError:
            raise
        except (ValidationError, ValueError, KeyError) as e:
            raise TranslationError(f"Cannot translate entry {entry.dn}: {e}", dn=entry.dn) from e
