from __future__ import annotations

from typing import Dict, List

from erp_obras.domain.models import PAYMENT_METHODS, TRANSACTION_CATEGORIES


FRIENDLY_TERMS: Dict[str, str] = {
    "app_name": "Morais ERP Obras",
    "order": "Pedido de material",
    "quote": "Cotacao",
    "supplier": "Fornecedor",
    "project": "Obra",
    "client": "Cliente",
    "payable": "Conta a pagar",
    "receivable": "Conta a receber",
    "workspace": "Workspace",
}


STATUS_GROUPS: Dict[str, List[Dict[str, str]]] = {
    "requisicao": [
        {
            "key": "pending_quotes",
            "label": "Aguardando Cotacoes",
            "description": "Pedido aberto coletando propostas de fornecedores.",
        },
        {
            "key": "ready_for_approval",
            "label": "Pronto para Aprovacao",
            "description": "Pedido com cotacoes suficientes para decisao.",
        },
        {
            "key": "approved",
            "label": "Aprovado",
            "description": "Cotacao escolhida e conta a pagar gerada.",
        },
        {
            "key": "rejected",
            "label": "Rejeitado",
            "description": "Pedido encerrado sem compra.",
        },
        {
            "key": "delivered",
            "label": "Entregue",
            "description": "Material recebido na obra.",
        },
    ],
    "conta_pagar": [
        {"key": "pending", "label": "Pendente", "description": "Conta aguardando pagamento."},
        {"key": "paid", "label": "Pago", "description": "Pagamento registrado."},
        {"key": "overdue", "label": "Atrasado", "description": "Vencimento anterior a hoje sem pagamento."},
        {"key": "cancelled", "label": "Cancelado", "description": "Conta anulada sem pagamento."},
    ],
    "conta_receber": [
        {"key": "pending", "label": "Pendente", "description": "Parcela aguardando recebimento."},
        {"key": "paid", "label": "Recebido", "description": "Recebimento registrado."},
        {"key": "overdue", "label": "Atrasado", "description": "Vencimento anterior a hoje sem recebimento."},
        {"key": "cancelled", "label": "Cancelado", "description": "Parcela anulada."},
    ],
    "obra": [
        {"key": "planning", "label": "Planejamento", "description": "Obra em fase de planejamento."},
        {"key": "in_progress", "label": "Em andamento", "description": "Obra em execucao."},
        {"key": "completed", "label": "Concluida", "description": "Obra entregue ao cliente."},
    ],
}


APPROVAL_REASON_LABELS: Dict[str, str] = {
    "order_closed": "Pedido ja encerrado.",
    "quotes_insufficient": "Sao necessarias ao menos 3 cotacoes para aprovar.",
    "payment_method_required": "Defina a forma de pagamento da cotacao escolhida.",
}


MESSAGES: Dict[str, Dict[str, str]] = {
    "success": {
        "order_created": "Pedido criado com sucesso.",
        "quote_added": "Cotacao registrada.",
        "quote_selected": "Cotacao selecionada.",
        "quote_updated": "Cotacao atualizada.",
        "order_approved": "Pedido aprovado. Conta a pagar gerada.",
        "order_rejected": "Pedido rejeitado.",
        "order_delivered": "Entrega confirmada.",
        "payable_created": "Conta a pagar registrada.",
        "payable_paid": "Pagamento registrado.",
        "payable_cancelled": "Conta a pagar cancelada.",
        "receivable_created": "Conta a receber registrada.",
        "receivable_received": "Recebimento registrado.",
        "project_saved": "Obra salva com sucesso.",
        "supplier_saved": "Fornecedor salvo com sucesso.",
        "material_saved": "Material salvo com sucesso.",
    },
    "error": {
        "action_not_allowed_for_status": "Esta acao nao e permitida para o status atual.",
        "action_invalid": "Acao invalida para esta operacao.",
        "ai_temporarily_unavailable": "Classificacao automatica indisponivel no momento.",
        "amount_invalid": "Valor invalido.",
        "client_not_found": "Cliente nao encontrado.",
        "confirmation_required": "Confirme explicitamente esta acao critica para continuar.",
        "date_invalid": "Data invalida. Use o formato AAAA-MM-DD.",
        "delivery_days_invalid": "Prazo de entrega invalido.",
        "description_required": "Descricao obrigatoria para continuar.",
        "installments_invalid": "Numero de parcelas invalido.",
        "items_required": "Informe itens validos para continuar.",
        "material_not_found": "Material nao encontrado.",
        "name_required": "Informe o nome.",
        "order_approval_blocked": "O pedido nao atende os requisitos para aprovacao.",
        "order_not_found": "Pedido nao encontrado.",
        "payable_not_found": "Conta a pagar nao encontrada.",
        "payload_invalid": "Dados enviados sao invalidos.",
        "payment_method_invalid": "Forma de pagamento invalida.",
        "project_not_found": "Obra nao encontrada.",
        "quantity_invalid": "Quantidade invalida.",
        "quote_not_found": "Cotacao nao encontrada neste pedido.",
        "receivable_not_found": "Conta a receber nao encontrada.",
        "record_not_found": "Registro nao encontrado.",
        "status_invalid": "Status informado e invalido para esta etapa.",
        "supplier_id_required": "Informe o fornecedor.",
        "supplier_not_found": "Fornecedor nao encontrado.",
        "unexpected_error": "Nao foi possivel concluir a operacao. Tente novamente em instantes.",
    },
    "confirm": {
        "approve_order": "Confirma a aprovacao do pedido? Uma conta a pagar sera gerada.",
        "reject_order": "Confirma a rejeicao do pedido? Esta acao nao pode ser desfeita.",
        "cancel_payable": "Confirma o cancelamento da conta a pagar?",
    },
}


UI_TEXTS: Dict[str, str] = {
    "impact.approve_order": "Gera uma conta a pagar com o valor da cotacao escolhida.",
    "impact.reject_order": "Encerra o pedido sem compra.",
    "impact.cancel_payable": "A conta deixa de compor o fluxo de caixa.",
}


def status_keys_for_group(group: str) -> List[str]:
    return [item["key"] for item in STATUS_GROUPS.get(group, [])]


def status_label(group: str, key: str | None, default: str | None = None) -> str:
    for item in STATUS_GROUPS.get(group, []):
        if item["key"] == key:
            return item["label"]
    if default is not None:
        return default
    return str(key or "")


def build_status_labels() -> Dict[str, Dict[str, str]]:
    return {group: {item["key"]: item["label"] for item in items} for group, items in STATUS_GROUPS.items()}


STATUS_LABELS = build_status_labels()


def get_ui_text(key: str, default: str | None = None) -> str:
    if key in UI_TEXTS:
        return UI_TEXTS[key]
    if default is not None:
        return default
    return key


def get_message(category: str, key: str, default: str | None = None) -> str:
    message = MESSAGES.get(category, {}).get(key)
    if message:
        return message
    if default is not None:
        return default
    return key


def error_message(key: str, default: str | None = None) -> str:
    return get_message("error", key, default)


def success_message(key: str, default: str | None = None) -> str:
    return get_message("success", key, default)


def confirm_message(key: str, default: str | None = None) -> str:
    return get_message("confirm", key, default)


def approval_reason_message(reason: str | None) -> str | None:
    if not reason:
        return None
    return APPROVAL_REASON_LABELS.get(reason, reason)


def frontend_bundle() -> Dict[str, object]:
    from erp_obras.procurement.flow_policy import ACTION_LABELS, FLOW_POLICY, PROCESS_STAGES

    return {
        "terms": FRIENDLY_TERMS,
        "status_groups": STATUS_GROUPS,
        "status_labels": STATUS_LABELS,
        "approval_reasons": APPROVAL_REASON_LABELS,
        "payment_methods": list(PAYMENT_METHODS),
        "transaction_categories": list(TRANSACTION_CATEGORIES),
        "messages": MESSAGES,
        "flow": {
            "stages": PROCESS_STAGES,
            "action_labels": ACTION_LABELS,
            "policy": FLOW_POLICY,
        },
    }
