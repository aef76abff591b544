"""Selector registry: logical field name -> CSS selector candidates. Pure data, YAML-overridable."""

from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

from erpfill.errors import ConfigError

DEFAULT_SELECTORS: dict[str, list[str]] = {
    # login page
    "userName": ["#UserName", "input[name='UserName']"],
    "password": ["#Password", "input[name='Password']"],
    "language": ["#Language", "select#Language"],
    "loginDate": ["#LoginDataTime", "#loginDate", "input[name='LoginDataTime']"],
    "validateCaptcha": ["#ValidateCaptcha", "input[name='ValidateCaptcha']"],
    "captchaImage": ["#imgcapt", "#CaptchaImage", "img.captcha"],
    "loginButton": ["button[type='submit']", "button[onclick*='ValidateAndLogin']", "#btnView", ".login-btn"],
    "logout": ["#logout", "a.logout", "button.logout"],
    "userMenu": ["#userMenu", ".user-menu", ".profile-menu"],
    # transaction payment form
    "formRoot": ["#TransactionPaymentForm", "#MainForm", "form#TransactionPayment", "form"],
    "admissionInput": ["#Admissionno", "input#Admissionno"],
    "iconSearch": ["#iconsearch", "button#iconsearch", ".icon-search"],
    "product": ["#Product", "select#Product"],
    "account": ["#AccountNo", "#Account"],
    "purpose": ["#Purpose", "#PurposeId", "#PurposeList"],
    "activityType": ["#ActivityType"],
    "voucherType": ["#VoucherType"],
    "voucherText": ["#vouchertext"],
    "saveButton": ["#btnSave", "#btnPost", "input#btnSave", "#Save", "button.save", "button[type='submit']"],
    "genericSubmit": ["form button[type='submit']", "form input[type='submit']"],
    "errorModal": ["#ErrostList", ".error-modal", ".validation-errors"],
    "sweetConfirm": [".sa-confirm-button-container button.confirm", ".swal2-confirm"],
    "ledgerFolio": ["#MoreDisbursementDetaos_LedgerFolioNo"],
    "prepareButton": ["#btnsaveDisbursments", "input[value='Prepare']"],
    # loan disbursement form
    "saveDetails": ["#btnsaveDisbursments"],
    "postButton": ["#btnPost"],
    "formAction": ["form[action*='TransactionPayment']"],
    "totalAmount": ["#TotalAmount"],
}

# Loan disbursement: spreadsheet header -> form element id.
DEFAULT_FIELD_MAP: dict[str, str] = {
    "Admissionno": "Admissionno",
    "AdmissionNoHidden": "AdmissionNoPkey",
    "ValueDate": "ValueDate",
    "Product": "Product",
    "AccountNo": "AccountNo",
    "TempAccountNo": "TempAccountNo",
    "ActivityType": "ActivityType",
    "VoucherType": "VoucherType",
    "ChequeNo": "ChequeNo",
    "ChequeDate": "ChequeDate",
    "VoucherNo": "VoucherNo",
    "ContraProduct": "ContraProduct",
    "ContraAccountNo": "ContraAccountNo",
    "SocietyVoucherNo": "SocietyVoucherNo",
    "Narration": "Narration",
    "TotalAmount": "TotalAmount",
    "AmountInWords": "AmountInWords",
    "MoreDisbursementDetaos_ApplicationNo": "MoreDisbursementDetaos_ApplicationNo",
    "MoreDisbursementDetaos_AdmissionNoPkey": "MoreDisbursementDetaos_AdmissionNoPkey",
    "MoreDisbursementDetaos_ProductSlNo": "MoreDisbursementDetaos_ProductSlNo",
    "MoreDisbursementDetaos_LoanNo": "MoreDisbursementDetaos_LoanNo",
    "MoreDisbursementDetaos_OldLoanNo": "MoreDisbursementDetaos_OldLoanNo",
    "MoreDisbursementDetaos_DPNDate": "MoreDisbursementDetaos_DPNDate",
    "MoreDisbursementDetaos_DPNNo": "MoreDisbursementDetaos_DPNNo",
    "MoreDisbursementDetaos_DueDate": "MoreDisbursementDetaos_DueDate",
    "MoreDisbursementDetaos_DateOfAdvice": "MoreDisbursementDetaos_DateOfAdvice",
    "MoreDisbursementDetaos_DebitSlipNo": "MoreDisbursementDetaos_DebitSlipNo",
    "MoreDisbursementDetaos_LedgerFolioNo": "MoreDisbursementDetaos_LedgerFolioNo",
    "MoreDisbursementDetaos_DCCBSBNo": "MoreDisbursementDetaos_DCCBSBNo",
    "MoreDisbursementDetaos_PolicyName": "MoreDisbursementDetaos_PolicyName",
    "MoreDisbursementDetaos_ROI": "MoreDisbursementDetaos_ROI",
    "MoreDisbursementDetaos_PenalROI": "MoreDisbursementDetaos_PenalROI",
    "MoreDisbursementDetaos_IOAROI": "MoreDisbursementDetaos_IOAROI",
    "MoreDisbursementDetaos_DisbursmentAmount": "MoreDisbursementDetaos_DisbursmentAmount",
    "IdTransfer": "IdTransfer",
    "IdCash": "IdCash",
    "IdCheck": "IdCheck",
}


class SelectorConfig(BaseModel):
    """Explicit selector configuration passed to every workflow entry point."""
    model_config = ConfigDict(frozen=True, extra="forbid")

    selectors: dict[str, tuple[str, ...]] = {}
    fields: dict[str, str] = {}
    sub_detail_prefixes: tuple[str, ...] = ("MoreDisbursementDetaos",)
    login_url_markers: tuple[str, ...] = ("/Login", "/Home")

    @field_validator("selectors", mode="before")
    @classmethod
    def _coerce_candidates(cls, value: Any) -> Any:
        """Accept a bare string as a single candidate."""
        if not isinstance(value, dict):
            return value
        out = {}
        for name, candidates in value.items():
            if isinstance(candidates, str):
                candidates = [candidates]
            out[name] = tuple(c.strip() for c in candidates if c and c.strip())
        return out

    def candidates(self, name: str) -> tuple[str, ...]:
        return self.selectors.get(name, ())

    def css(self, name: str) -> str:
        """All candidates as one CSS selector list (first match in document order)."""
        return ", ".join(self.candidates(name))

    def field_id(self, header: str) -> str:
        """Element id for a spreadsheet header; unmapped headers are used as-is."""
        return self.fields.get(header) or header

    def merged(self, override: dict[str, Any]) -> "SelectorConfig":
        """New config with override's selectors/fields layered on top of this one."""
        data = self.model_dump()
        override = dict(override or {})
        for key in ("selectors", "fields"):
            section = override.pop(key, None) or {}
            if not isinstance(section, dict):
                raise ConfigError(f"{key!r} must be a mapping")
            data[key] = {**data[key], **section}
        data.update(override)
        return SelectorConfig.model_validate(data)

    def to_yaml(self) -> str:
        data = self.model_dump()
        data["selectors"] = {k: list(v) for k, v in data["selectors"].items()}
        data["sub_detail_prefixes"] = list(data["sub_detail_prefixes"])
        data["login_url_markers"] = list(data["login_url_markers"])
        return yaml.safe_dump(data, sort_keys=False)


def default_selectors() -> SelectorConfig:
    return SelectorConfig(selectors=DEFAULT_SELECTORS, fields=DEFAULT_FIELD_MAP)


def load_selectors(path: Optional[Path] = None) -> SelectorConfig:
    """Defaults, with the YAML file at path (if any) merged on top."""
    base = default_selectors()
    if path is None:
        return base
    p = Path(path)
    if not p.is_file():
        raise ConfigError("Selector file not found", path=str(p))
    try:
        with open(p, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML: {e}", path=str(p))
    if not isinstance(data, dict):
        raise ConfigError("Selector file must contain a mapping", path=str(p))
    try:
        return base.merged(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid selector config: {e}", path=str(p))
