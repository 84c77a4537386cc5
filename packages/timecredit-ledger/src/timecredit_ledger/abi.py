"""Function tables and revert reasons of the ledger and catalog contracts."""
from __future__ import annotations

from timecredit_chain.abi import ContractFunction

# Revert reasons shared by the deployed contracts and their in-process handlers
REASON_ONLY_OWNER = "Only owner"
REASON_EMPLOYEE_NOT_FOUND = "Employee not found"
REASON_EMPLOYEE_EXISTS = "Employee already registered"
REASON_INSUFFICIENT_BOOK_BALANCE = "Insufficient book balance"
REASON_INDEX_OUT_OF_RANGE = "Index out of range"
REASON_INVALID_INPUT = "Invalid input"
REASON_PRODUCT_NOT_FOUND = "Product not found"
REASON_PRODUCT_EXISTS = "Product already exists"
REASON_INCORRECT_PAYMENT = "Incorrect payment amount"


class LedgerFunctions:
    OWNER = ContractFunction("owner", (), ("address",))
    REGISTER_EMPLOYEE = ContractFunction("registerEmployee", ("string", "address"))
    UPDATE_EMPLOYEE_STATUS = ContractFunction("updateEmployeeStatus", ("string", "bool"))
    GET_EMPLOYEE = ContractFunction("getEmployee", ("string",), ("string", "address", "bool", "uint256"))
    GET_EMPLOYEE_CODES = ContractFunction("getEmployeeCodes", (), ("string[]",))
    CREDIT = ContractFunction("credit", ("string", "uint256"))
    RECORD_WITHDRAW = ContractFunction("recordWithdraw", ("string", "uint256"))
    RECORD_PURCHASE = ContractFunction("recordPurchase", ("string", "uint256"))
    GET_BOOK_BALANCE = ContractFunction("getBookBalance", ("string",), ("uint256",))
    GET_TOTALS = ContractFunction("getTotals", ("string",), ("uint256", "uint256"))
    GET_LOG_COUNT = ContractFunction("getLogCount", ("string",), ("uint256",))
    GET_LOG_BY_INDEX = ContractFunction("getLogByIndex", ("string", "uint256"), ("uint256", "uint8", "uint256"))

    ALL = (
        OWNER, REGISTER_EMPLOYEE, UPDATE_EMPLOYEE_STATUS, GET_EMPLOYEE, GET_EMPLOYEE_CODES,
        CREDIT, RECORD_WITHDRAW, RECORD_PURCHASE, GET_BOOK_BALANCE, GET_TOTALS,
        GET_LOG_COUNT, GET_LOG_BY_INDEX,
    )


class CatalogFunctions:
    OWNER = ContractFunction("owner", (), ("address",))
    ADD_PRODUCT = ContractFunction("addProduct", ("string", "string", "uint256", "string"))
    UPDATE_PRODUCT = ContractFunction("updateProduct", ("string", "string", "uint256", "string"))
    DELETE_PRODUCT = ContractFunction("deleteProduct", ("string",))
    GET_PRODUCT = ContractFunction("getProduct", ("string",), ("string", "string", "uint256", "string", "bool"))
    GET_ALL_PRODUCTS = ContractFunction("getAllProducts", (), ("(string,string,uint256,string,bool)[]",))
    BUY_PRODUCTS = ContractFunction("buyProducts", ("string[]", "uint256[]"))

    ALL = (
        OWNER, ADD_PRODUCT, UPDATE_PRODUCT, DELETE_PRODUCT,
        GET_PRODUCT, GET_ALL_PRODUCTS, BUY_PRODUCTS,
    )
