"""
an interface and implementations for sending review requests to the catalog's curators.

When a version is submitted for review, the :py:class:`~mdcat.catalog.service.CatalogService`
composes a message (see :py:func:`format_review_request`) and hands it to a
:py:class:`NotificationGateway` which delivers it to an audience: a named group of curators.
Delivery is best-effort: a failure is reported via a :py:class:`~mdcat.catalog.base.CollaboratorFailure`
which the service logs and otherwise ignores.
"""
import json
from urllib.parse import quote
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from collections.abc import Mapping
from typing import List, Tuple

import requests

from mdcat.base.config import ConfigurationException
from .base import CollaboratorFailure, MetadataEntity, User

DEF_AUDIENCE = "Metadata Curators"
DEF_SUBJECT_PREFIX = "[Catalog]"

__all__ = [ "NotificationGateway", "EmailNotificationGateway", "SimulatedNotificationGateway",
            "create_notification_gateway", "format_review_request" ]

class NotificationGateway(ABC):
    """
    an interface for delivering messages to a named audience
    """

    def __init__(self, config: Mapping):
        self.cfg = config

    @property
    def audience(self) -> str:
        """
        the name of the audience that review requests should be sent to
        """
        return self.cfg.get("audience", DEF_AUDIENCE)

    @property
    def subject_prefix(self) -> str:
        return self.cfg.get("subject_prefix", DEF_SUBJECT_PREFIX)

    @abstractmethod
    def notify(self, audience: str, subject: str, body: str):
        """
        send a message to an audience
        :param str audience:  the name of the group of recipients
        :param str  subject:  the message's subject line
        :param str     body:  the message's (plain text) content
        :raises CollaboratorFailure:  if the message could not be handed off for delivery
        """
        raise NotImplementedError()


class EmailNotificationGateway(NotificationGateway):
    """
    a NotificationGateway that sends messages as email via a remote email-sending service.

    This implementation supports the following configuration parameters:

    ``service_endpoint``
        (*str*) *required*. the base URL of the email-sending service
    ``timeout``
        (*int*) the number of seconds to wait for the service to respond (default: 30)
    ``audience``
        (*str*) the name of the group that review requests are sent to
        (default: "Metadata Curators")
    ``subject_prefix``
        (*str*) a string to start subject lines with (default: "[Catalog]")
    """
    system_name = "email"

    def __init__(self, config: Mapping):
        super(EmailNotificationGateway, self).__init__(config)
        self.endpoint = self.cfg.get("service_endpoint")
        if not self.endpoint:
            raise ConfigurationException("review: Missing required config param: service_endpoint")
        self.endpoint = self.endpoint.rstrip('/')
        self.timeout = self.cfg.get("timeout", 30)

    def notify(self, audience: str, subject: str, body: str):
        url = f"{self.endpoint}/send-email-group/{quote(audience)}"
        payload = { "subject": subject, "bodyText": body }
        headers = { "Content-Type": "application/json", "Accept": "application/json" }

        try:
            resp = requests.post(url, headers=headers, data=json.dumps(payload), timeout=self.timeout)
        except Exception as ex:
            raise CollaboratorFailure(f"Failed to POST to email service: {ex}", cause=ex)

        if resp.status_code >= 300:
            raise CollaboratorFailure(
                f"Email service error: {resp.status_code} {resp.reason}\n{resp.text}"
            )


class SimulatedNotificationGateway(NotificationGateway):
    """
    a NotificationGateway that keeps the messages it is asked to send in its ``sent`` list
    (as ``(audience, subject, body)`` tuples) rather than delivering them.  This is intended for
    testing and demonstration.
    """
    system_name = "sim"

    def __init__(self, config: Mapping=None):
        if config is None:
            config = {}
        super(SimulatedNotificationGateway, self).__init__(config)
        self.sent: List[Tuple[str, str, str]] = []

    def notify(self, audience: str, subject: str, body: str):
        self.sent.append((audience, subject, body))


_gateway_classes = {
    EmailNotificationGateway.system_name:      EmailNotificationGateway,
    SimulatedNotificationGateway.system_name:  SimulatedNotificationGateway
}

def create_notification_gateway(config: Mapping) -> NotificationGateway:
    """
    a factory function that creates the gateway for sending review requests.  If ``config`` is
    not given or is empty, None is returned; this disables review requests.

    If non-empty, the given configuration must include the ``name`` parameter, which identifies
    which class will be instantiated ("email" or "sim").  All other configuration parameters are
    class-dependent.

    :raises ConfigurationException: if the given, non-empty configuration lacks a ``name`` or its
                                    value is unrecognized.
    """
    if not config:
        return None

    if not config.get('name'):
        raise ConfigurationException("review: missing required name parameter")

    cls = _gateway_classes.get(config['name'])
    if not cls:
        raise ConfigurationException("review: name not supported: "+config['name'])

    return cls(config)

def format_review_request(entity: MetadataEntity, submitter: User, groupnames: List[str]=None,
                          prefix: str=DEF_SUBJECT_PREFIX, when: datetime=None) -> Tuple[str, str]:
    """
    compose the message requesting the review of a submitted entity version
    :param MetadataEntity entity:  the submitted version
    :param User        submitter:  the user that submitted it
    :param [str]      groupnames:  the names of the groups the version belongs to
    :param str            prefix:  the string to start the subject line with
    :param datetime         when:  the time of submission (default: now)
    :return:  the subject and body of the message as a 2-tuple
    """
    if not when:
        when = datetime.now(timezone.utc)
    na = "N/A"
    label = entity.title or entity.uid or entity.meta_id

    subject = "Review Request: {}".format(label)
    if prefix:
        subject = "{} {}".format(prefix, subject)

    name = " ".join(n for n in [submitter.first_name, submitter.last_name] if n)
    body = ("A new draft submission requires your review.\n\n"
            "{kind} Details:\n"
            "Title: {title}\n"
            "UID: {uid}\n"
            "Meta ID: {metaid}\n"
            "Instance ID: {instid}\n\n"
            "Submitted by:\n"
            "Name: {name}\n"
            "Email: {email}\n"
            "Groups: {groups}\n\n"
            "Submitted on: {when}").format(kind=(entity.kind or "Entity").capitalize(),
                                           title=entity.title or na, uid=entity.uid or na,
                                           metaid=entity.meta_id or na,
                                           instid=entity.instance_id or na,
                                           name=name or submitter.id, email=submitter.email or na,
                                           groups=", ".join(groupnames) if groupnames else na,
                                           when=when.isoformat())
    return subject, body
