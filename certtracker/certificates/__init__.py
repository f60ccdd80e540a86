"""Certificates module — types, certificates, revisions and attachments."""

from certtracker.certificates.models import Certificate, CertificateRevision, CertificateType

__all__ = ["Certificate", "CertificateRevision", "CertificateType"]
