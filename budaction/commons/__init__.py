"""Shared configuration, constants, exceptions and observability for budaction."""
