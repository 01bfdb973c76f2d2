from __future__ import annotations

# Group-facing strings are Brazilian Portuguese, API errors English.
MESSAGES = {
    "sender_you": "Você",
    "sender_anonymous": "Anônimo",
    "non_text_marker": "<interação sem texto>",
    "delivery_title": "🤖 *Resumo Diário - {group_name}*",
    "delivery_date": "📅 {date}",
    "delivery_footer": "_Resumo gerado automaticamente por Resume Zap_",
    "error_unauthorized": "Unauthorized",
    "error_missing_instance": "instanceId is required",
    "error_missing_summary": "summaryId is required",
    "error_summary_not_found": "Summary {summary_id} not found",
    "error_already_sent": "Summary already sent to this group",
    "error_no_connection": "No active WhatsApp connection found",
    "error_no_groups": "No groups selected for summarization",
    "error_qr_missing": "Gateway did not return a QR code",
    "error_instance_not_found": "Connection {instance_id} not found",
    "error_connection_type": "connectionType must be one of: {allowed}",
    "group_default_name": "Sem nome",
    "groups_none_found": "Nenhum grupo encontrado",
    "history_cleaned": "Histórico limpo com sucesso",
    "status_no_profiles": "No profiles with summary time configured",
    "status_no_users": "No users scheduled for {hour:02d}:00:00 (UTC{offset:+d})",
    "status_processed": "Processed {count} users for hour {hour:02d}:00:00 (UTC{offset:+d})",
}


def msg(key: str, **kwargs: object) -> str:
    template = MESSAGES[key]
    return template.format(**kwargs)
