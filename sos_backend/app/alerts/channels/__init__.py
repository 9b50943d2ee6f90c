"""
channels — Best-effort notification backends.

Each channel is a class wrapping a shared ``httpx.AsyncClient`` and exposes
an async ``send(...)`` returning a DeliveryAttempt. Provider failures are
turned into a FAILED attempt inside the channel; nothing is retried.

    base               — PushSender / EmailSender interfaces, shared POST
    push_notification  — OneSignal broadcast
    email_alert        — Brevo transactional email to emergency contacts
"""
