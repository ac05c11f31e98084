from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, EmailStr, Field


# Enums
class AccountingEntryType(str, Enum):
    facture_client = "facture_client"
    facture_fournisseur = "facture_fournisseur"
    avoir_client = "avoir_client"
    avoir_fournisseur = "avoir_fournisseur"
    devis = "devis"
    bon_de_commande = "bon_de_commande"
    note_de_frais = "note_de_frais"
    paiement_recu = "paiement_recu"
    paiement_effectue = "paiement_effectue"


class AccountingEntryStatus(str, Enum):
    brouillon = "brouillon"
    en_attente = "en_attente"
    approuvee = "approuvee"
    envoyee = "envoyee"
    payee = "payee"
    partiellement_payee = "partiellement_payee"
    en_retard = "en_retard"
    annulee = "annulee"


class SecretaryDocumentType(str, Enum):
    lettre = "lettre"
    note_interne = "note_interne"
    rapport = "rapport"
    contrat = "contrat"
    presentation = "presentation"
    autre = "autre"


class SecretaryDocumentStatus(str, Enum):
    brouillon = "brouillon"
    en_revision = "en_revision"
    approuve = "approuve"
    envoye = "envoye"
    archive = "archive"


# Accounting Entry Schemas
class AccountingEntryBase(BaseModel):
    entry_type: AccountingEntryType
    reference_number: str = Field(min_length=1)
    related_bl_id: Optional[str] = None
    related_client_id: Optional[str] = None
    issue_date: datetime
    due_date: Optional[datetime] = None
    amount: float
    currency: Optional[str] = None
    tax_amount: Optional[float] = None
    total_amount: Optional[float] = None
    status: AccountingEntryStatus = AccountingEntryStatus.brouillon
    description: Optional[str] = None
    notes: Optional[str] = None


class AccountingEntryCreate(AccountingEntryBase):
    pass


class AccountingEntryUpdate(BaseModel):
    entry_type: Optional[AccountingEntryType] = None
    reference_number: Optional[str] = None
    related_bl_id: Optional[str] = None
    related_client_id: Optional[str] = None
    issue_date: Optional[datetime] = None
    due_date: Optional[datetime] = None
    amount: Optional[float] = None
    currency: Optional[str] = None
    tax_amount: Optional[float] = None
    total_amount: Optional[float] = None
    status: Optional[AccountingEntryStatus] = None
    description: Optional[str] = None
    notes: Optional[str] = None


class AccountingEntryResponse(AccountingEntryBase):
    id: str
    currency: str
    total_amount: float
    created_at: datetime
    created_by_user_id: Optional[str] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


# Secretary Document Schemas
class SecretaryDocumentBase(BaseModel):
    title: str = Field(min_length=1)
    document_type: SecretaryDocumentType
    content: str = ""
    status: SecretaryDocumentStatus = SecretaryDocumentStatus.brouillon
    related_client_id: Optional[str] = None
    related_bl_id: Optional[str] = None
    recipient_email: Optional[EmailStr] = None


class SecretaryDocumentCreate(SecretaryDocumentBase):
    pass


class SecretaryDocumentUpdate(BaseModel):
    title: Optional[str] = None
    document_type: Optional[SecretaryDocumentType] = None
    content: Optional[str] = None
    status: Optional[SecretaryDocumentStatus] = None
    related_client_id: Optional[str] = None
    related_bl_id: Optional[str] = None
    recipient_email: Optional[EmailStr] = None


class SecretaryDocumentResponse(SecretaryDocumentBase):
    id: str
    version: int
    recipient_email: Optional[str] = None
    created_at: datetime
    created_by_user_id: Optional[str] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


# Company profile
class CompanyProfileBase(BaseModel):
    app_name: Optional[str] = None
    company_name: Optional[str] = None
    company_address: Optional[str] = None
    company_email: Optional[EmailStr] = None
    company_phone: Optional[str] = None


class CompanyProfileResponse(CompanyProfileBase):
    company_email: Optional[str] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True
