from __future__ import annotations

from typing import Dict, List


FRIENDLY_TERMS: Dict[str, str] = {
    "app_name": "Payflow",
    "payment_request": "Solicitacao de pagamento",
    "invoice": "Nota fiscal",
    "supplier": "Fornecedor",
    "company": "Empresa",
    "sector": "Setor",
    "cost_center": "Centro de custo",
    "history": "Historico",
}


STATUS_ITEMS: List[Dict[str, str]] = [
    {
        "key": "submitted",
        "label": "Aguardando aprovacao do gestor",
        "description": "Solicitacao enviada e aguardando decisao do gestor da empresa.",
    },
    {
        "key": "finance_review",
        "label": "Em analise financeira",
        "description": "Aprovada pelo gestor e em analise pelo financeiro.",
    },
    {
        "key": "approved",
        "label": "Aprovada",
        "description": "Aprovada pelo financeiro e pronta para programacao.",
    },
    {
        "key": "payment_scheduled",
        "label": "Pagamento programado",
        "description": "Pagamento com data prevista definida.",
    },
    {
        "key": "paid",
        "label": "Pago",
        "description": "Pagamento realizado. Solicitacao encerrada.",
    },
    {
        "key": "manager_rejected",
        "label": "Rejeitada pelo gestor",
        "description": "Rejeitada pelo gestor. O solicitante pode corrigir e reenviar.",
    },
    {
        "key": "finance_rejected",
        "label": "Rejeitada pelo financeiro",
        "description": "Rejeitada pelo financeiro. Solicitacao encerrada.",
    },
]


ACTION_LABELS: Dict[str, str] = {
    "submit": "Enviar solicitacao",
    "edit": "Editar solicitacao",
    "resubmit": "Reenviar solicitacao",
    "delete": "Excluir solicitacao",
    "approve": "Aprovar",
    "reject": "Rejeitar",
    "schedule": "Programar pagamento",
    "mark_paid": "Marcar como pago",
}


ROLE_LABELS: Dict[str, str] = {
    "requester": "Solicitante",
    "manager": "Gestor",
    "finance": "Financeiro",
    "admin": "Administrador",
}


PAYMENT_TERM_LABELS: Dict[str, str] = {
    "short": "curto",
    "ideal": "ideal",
    "comfortable": "bom",
}


MESSAGES: Dict[str, Dict[str, str]] = {
    "success": {
        "request_created": "Solicitacao enviada com sucesso!",
        "request_updated": "Solicitacao atualizada com sucesso!",
        "request_resubmitted": "Solicitacao reenviada para aprovacao!",
        "request_deleted": "Solicitacao excluida.",
        "batch_done": "Processamento em lote concluido.",
    },
    "error": {
        "action_invalid": "Acao invalida para esta operacao.",
        "action_not_allowed_for_status": "Esta acao nao e permitida para o status atual.",
        "amount_invalid": "Valor total invalido.",
        "auth_required": "Autenticacao necessaria.",
        "bank_account_required": "Informe banco, agencia e conta corrente.",
        "comment_required": "Adicione um comentario para rejeitar.",
        "company_required": "Empresa e obrigatoria.",
        "concurrent_update": "A solicitacao foi alterada por outra pessoa. Recarregue e tente novamente.",
        "cost_center_not_found": "Centro de custo nao encontrado.",
        "company_not_found": "Empresa nao encontrada.",
        "date_invalid": "Data informada e invalida.",
        "dependency_unavailable": "Servico temporariamente indisponivel. Tente novamente em instantes.",
        "description_required": "Produto/Servico e obrigatorio.",
        "due_date_required": "Data de vencimento e obrigatoria.",
        "early_due_justification_required": "Justifique o vencimento com menos de 10 dias.",
        "holder_required": "Informe nome e CNPJ/CPF do titular da conta.",
        "ids_required": "Selecione ao menos uma solicitacao.",
        "invoice_document_required": "Arquivo da NF e obrigatorio.",
        "invoice_number_required": "Numero da NF e obrigatorio.",
        "issue_date_required": "Data de emissao e obrigatoria.",
        "no_changes": "Nenhuma alteracao informada.",
        "payment_method_invalid": "Forma de pagamento invalida.",
        "permission_denied": "Voce nao possui permissao para executar esta acao.",
        "planned_payment_date_required": "Informe a data prevista de pagamento.",
        "request_not_found": "Solicitacao nao encontrada.",
        "sector_required": "Setor e obrigatorio.",
        "sector_not_found": "Setor nao encontrado.",
        "slip_document_required": "Arquivo do boleto e obrigatorio.",
        "supplier_name_required": "Nome do fornecedor e obrigatorio.",
        "tax_id_invalid": "CNPJ do fornecedor invalido.",
        "titular_divergence_justification_required": "Justifique a divergencia entre fornecedor e titular da conta.",
        "unexpected_error": "Nao foi possivel concluir a operacao. Tente novamente em instantes.",
        "validation_error": "Dados invalidos. Revise os campos destacados.",
    },
}


def build_status_labels() -> Dict[str, str]:
    return {item["key"]: item["label"] for item in STATUS_ITEMS}


STATUS_LABELS = build_status_labels()


def status_label(status: str | None, default: str | None = None) -> str:
    key = str(status or "").strip()
    return STATUS_LABELS.get(key, default if default is not None else key)


def action_label(action: str, fallback: str | None = None) -> str:
    label = ACTION_LABELS.get(action)
    if label:
        return label
    if fallback is not None:
        return fallback
    return action


def get_message(category: str, key: str, default: str | None = None) -> str:
    text = MESSAGES.get(category, {}).get(key)
    if text:
        return text
    if default is not None:
        return default
    return key


def error_message(key: str, default: str | None = None) -> str:
    return get_message("error", key, default)


def success_message(key: str, default: str | None = None) -> str:
    return get_message("success", key, default)


def frontend_bundle() -> Dict[str, object]:
    return {
        "terms": FRIENDLY_TERMS,
        "statuses": STATUS_ITEMS,
        "status_labels": STATUS_LABELS,
        "action_labels": ACTION_LABELS,
        "role_labels": ROLE_LABELS,
        "payment_term_labels": PAYMENT_TERM_LABELS,
    }
