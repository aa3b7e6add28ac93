from __future__ import annotations

from .schemas import Language

MESSAGES: dict[str, dict[str, str]] = {
    "pt": {
        "allocate": "Alocar",
        "allocated": "Poupança alocada!",
        "nothingToAllocate": "Sem saldo positivo para alocar.",
        "goalNotFound": "Objetivo não encontrado.",
        "transactionsImported": "Transações importadas!",
        "investmentsImported": "Investimentos importados!",
        "errorInvestmentFileInDash": "Este ficheiro parece ser de investimentos. Importa-o na página de Investimentos.",
        "errorTransactionFileInInv": "Este ficheiro parece ser um extrato de transações. Importa-o no Painel.",
        "errorEmptyFile": "Ficheiro vazio.",
        "errorUnrecognizedHeaders": "Não foi possível reconhecer as colunas do ficheiro.",
        "errorUnsupportedFile": "Formato de ficheiro não suportado.",
        "addTransactionsFirst": "Adiciona algumas transações primeiro!",
        "aiUnavailable": "Não foi possível gerar a análise no momento.",
        "noDescription": "Sem descrição",
        "unknownAsset": "Ativo Desconhecido",
    },
    "en": {
        "allocate": "Allocate",
        "allocated": "Savings allocated!",
        "nothingToAllocate": "No positive balance to allocate.",
        "goalNotFound": "Goal not found.",
        "transactionsImported": "Transactions imported!",
        "investmentsImported": "Investments imported!",
        "errorInvestmentFileInDash": "This looks like an investments file. Import it on the Investments page.",
        "errorTransactionFileInInv": "This looks like a transactions statement. Import it on the Dashboard.",
        "errorEmptyFile": "Empty file.",
        "errorUnrecognizedHeaders": "Could not recognise the file's columns.",
        "errorUnsupportedFile": "Unsupported file format.",
        "addTransactionsFirst": "Add some transactions first!",
        "aiUnavailable": "Could not generate analysis at this time.",
        "noDescription": "No description",
        "unknownAsset": "Unknown Asset",
    },
}


def t(key: str, lang: Language | str = Language.pt) -> str:
    code = lang.value if isinstance(lang, Language) else str(lang)
    bundle = MESSAGES.get(code, MESSAGES["pt"])
    return bundle.get(key, MESSAGES["pt"].get(key, key))
