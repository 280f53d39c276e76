import functools
import re


def redact_pii(text: str) -> str:
    """
    Redacts Personally Identifiable Information (PII) like emails, phone numbers and national ids.
    """
    if not text:
        return text

    # Redact Emails
    email_pattern = r'[a-zA-Z0-9_.+-]+@[a-zA-Z0-9-]+\.[a-zA-Z0-9-.]+'
    redacted = re.sub(email_pattern, '[REDACTED_EMAIL]', text)

    # Redact national id numbers (12-digit citizen ids) before phones swallow them
    national_id_pattern = r'\b\d{12}\b'
    redacted = re.sub(national_id_pattern, '[REDACTED_ID]', redacted)

    # Redact Phone numbers (local 0xxx and +84 formats, optional separators)
    phone_pattern = r'(?:\+84|\b0)\d{2,3}[-. ]?\d{3}[-. ]?\d{3,4}\b'
    redacted = re.sub(phone_pattern, '[REDACTED_PHONE]', redacted)

    return redacted


def audit_node(node_name: str, node_func):
    """Middleware wrapper tracking async graph node execution in the audit log."""
    @functools.wraps(node_func)
    async def wrapper(state, config=None):
        from .logging import log_audit_action

        lead = state.get("lead")
        lead_id = getattr(lead, "id", "Unknown")
        log_audit_action(lead_id, f"STARTED_{node_name.upper()}", f"Node '{node_name}' execution started.")

        try:
            result = await node_func(state, config)
            log_audit_action(lead_id, f"COMPLETED_{node_name.upper()}", f"Node '{node_name}' executed successfully.")
            return result
        except Exception as e:
            log_audit_action(lead_id, f"FAILED_{node_name.upper()}", f"Node '{node_name}' failed: {str(e)}")
            raise e

    return wrapper
