from eth_account import Account
from eth_account.signers.local import LocalAccount
from web3 import Web3
from web3.middleware import SignAndSendRawMiddlewareBuilder

PACKET_SENT_EVENT_ABI = {
    "anonymous": False,
    "inputs": [
        {"indexed": True, "internalType": "uint256", "name": "dstChainId", "type": "uint256"},
        {"indexed": True, "internalType": "uint256", "name": "seq", "type": "uint256"},
        {"indexed": True, "internalType": "address", "name": "sender", "type": "address"},
        {"indexed": False, "internalType": "address", "name": "receiver", "type": "address"},
        {"indexed": False, "internalType": "bytes", "name": "payload", "type": "bytes"},
        {"indexed": False, "internalType": "bytes32", "name": "commitment", "type": "bytes32"},
    ],
    "name": "PacketSent",
    "type": "event",
}

RECV_PACKET_ABI = {
    "inputs": [
        {
            "components": [
                {"internalType": "uint256", "name": "srcChainId", "type": "uint256"},
                {"internalType": "uint256", "name": "dstChainId", "type": "uint256"},
                {"internalType": "uint256", "name": "srcSeq", "type": "uint256"},
                {"internalType": "address", "name": "sender", "type": "address"},
                {"internalType": "address", "name": "receiver", "type": "address"},
                {"internalType": "bytes", "name": "payload", "type": "bytes"},
                {"internalType": "bytes32", "name": "commitment", "type": "bytes32"},
                {"internalType": "uint256", "name": "hubSeq", "type": "uint256"},
            ],
            "internalType": "struct PacketReceiver.Packet",
            "name": "p",
            "type": "tuple",
        },
        {"internalType": "bytes", "name": "hubAttestation", "type": "bytes"},
    ],
    "name": "recvPacket",
    "outputs": [],
    "stateMutability": "nonpayable",
    "type": "function",
}

CONTRACT_ABIS = {
    "PacketSender": [PACKET_SENT_EVENT_ABI],
    "PacketReceiver": [RECV_PACKET_ABI],
}


class ContractUtility:
    """
    Utility for contract interaction and ABI lookup.

    Can be used in two modes:
    1. Full mode: Initialize with an RPC URL and secret to send signed transactions
    2. ABI-only mode: Initialize with empty strings to just look up ABIs
    """

    def __init__(self, rpc_url: str = "", secret: str = "", request_timeout: int = 30):
        """
        Initialize the ContractUtility.

        Args:
            rpc_url: HTTP(S) JSON-RPC endpoint (optional for ABI-only mode)
            secret: Private key for transactions (optional for ABI-only mode)
            request_timeout: Per-request timeout in seconds
        """
        self.rpc_url = rpc_url or None
        self.request_timeout = request_timeout
        if rpc_url and secret:
            self.w3 = self.setup_web3_middleware(secret)
        else:
            self.w3 = None

    def setup_web3_middleware(self, secret: str) -> Web3:
        if not secret:
            raise ValueError("Missing relayer private key. Please set RELAYER_PRIVATE_KEY.")

        account: LocalAccount = Account.from_key(secret)
        w3 = Web3(Web3.HTTPProvider(
            self.rpc_url,
            request_kwargs={'timeout': self.request_timeout},
        ))
        w3.middleware_onion.add(SignAndSendRawMiddlewareBuilder.build(account))
        w3.eth.default_account = account.address
        return w3

    def get_contract_abi(self, contract_name: str) -> list:
        """Returns the ABI fragment the relayer uses for the given contract."""
        try:
            return CONTRACT_ABIS[contract_name]
        except KeyError:
            raise ValueError(f"Unknown contract: {contract_name}") from None
