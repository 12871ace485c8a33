"""Solidity emitter: base contracts plus one self-contained fragment per feature."""

from __future__ import annotations

from collections.abc import Sequence
from string import Template
from typing import assert_never

from blockforge.blocks.models import (
  DEFAULT_BASE_URI,
  DEFAULT_INITIAL_SUPPLY,
  DEFAULT_NFT_SYMBOL,
  DEFAULT_SOLIDITY_DECIMALS,
  DEFAULT_TOKEN_SYMBOL,
  BaseBlock,
  BlacklistBlock,
  BurnBlock,
  Erc20Block,
  FeatureBlock,
  MintBlock,
  PausableBlock,
  StakeBlock,
  TransferBlock,
  WhitelistBlock,
  WithdrawBlock,
  contract_name_for,
)

LICENSE_HEADER = "// SPDX-License-Identifier: MIT"
PRAGMA = "pragma solidity ^0.8.20;"

_ERC20_BASE = Template("""\
/**
 * @title $contract
 * @dev ERC20 token composed from blocks.
 */
contract $contract {
    string public name;
    string public symbol;
    uint8 public constant decimals = $decimals;
    uint256 public totalSupply;
    address public owner;

    mapping(address => uint256) public balanceOf;
    mapping(address => mapping(address => uint256)) public allowance;

    event Transfer(address indexed from, address indexed to, uint256 value);
    event Approval(address indexed owner, address indexed spender, uint256 value);
    event OwnershipTransferred(address indexed previousOwner, address indexed newOwner);

    modifier onlyOwner() {
        require(msg.sender == owner, "Not owner");
        _;
    }

    constructor() {
        name = "$name";
        symbol = "$symbol";
        owner = msg.sender;
        _mint(msg.sender, $initial_supply * 10 ** uint256(decimals));
    }

    function transfer(address to, uint256 amount) public$guards returns (bool) {
        _transfer(msg.sender, to, amount);
        return true;
    }

    function approve(address spender, uint256 amount) public returns (bool) {
        allowance[msg.sender][spender] = amount;
        emit Approval(msg.sender, spender, amount);
        return true;
    }

    function transferFrom(address from, address to, uint256 amount) public$guards returns (bool) {
        require(allowance[from][msg.sender] >= amount, "Insufficient allowance");
        allowance[from][msg.sender] -= amount;
        _transfer(from, to, amount);
        return true;
    }

    function transferOwnership(address newOwner) public onlyOwner {
        require(newOwner != address(0), "Invalid owner");
        emit OwnershipTransferred(owner, newOwner);
        owner = newOwner;
    }

    function _transfer(address from, address to, uint256 amount) internal {
        require(to != address(0), "Invalid recipient");
        require(balanceOf[from] >= amount, "Insufficient balance");
        balanceOf[from] -= amount;
        balanceOf[to] += amount;
        emit Transfer(from, to, amount);
    }

    function _mint(address to, uint256 amount) internal {
        require(to != address(0), "Invalid recipient");
        totalSupply += amount;
        balanceOf[to] += amount;
        emit Transfer(address(0), to, amount);
    }""")

_NFT_BASE = Template("""\
/**
 * @title $contract
 * @dev Non-fungible token contract composed from blocks.
 */
contract $contract {
    string public name;
    string public symbol;
    string private baseTokenURI;
    uint256 public totalSupply;
    address public owner;
    uint256 private nextTokenId;

    mapping(uint256 => address) private owners;
    mapping(address => uint256) public balanceOf;
    mapping(uint256 => address) public getApproved;
    mapping(address => mapping(address => bool)) public isApprovedForAll;

    event Transfer(address indexed from, address indexed to, uint256 indexed tokenId);
    event Approval(address indexed owner, address indexed approved, uint256 indexed tokenId);
    event ApprovalForAll(address indexed owner, address indexed operator, bool approved);
    event OwnershipTransferred(address indexed previousOwner, address indexed newOwner);

    modifier onlyOwner() {
        require(msg.sender == owner, "Not owner");
        _;
    }

    constructor() {
        name = "$name";
        symbol = "$symbol";
        baseTokenURI = "$base_uri";
        owner = msg.sender;
        nextTokenId = 1;
    }

    function ownerOf(uint256 tokenId) public view returns (address) {
        address tokenOwner = owners[tokenId];
        require(tokenOwner != address(0), "Nonexistent token");
        return tokenOwner;
    }

    function approve(address to, uint256 tokenId) public {
        address tokenOwner = ownerOf(tokenId);
        require(msg.sender == tokenOwner || isApprovedForAll[tokenOwner][msg.sender], "Not authorized");
        getApproved[tokenId] = to;
        emit Approval(tokenOwner, to, tokenId);
    }

    function setApprovalForAll(address operator, bool approved) public {
        isApprovedForAll[msg.sender][operator] = approved;
        emit ApprovalForAll(msg.sender, operator, approved);
    }

    function transferFrom(address from, address to, uint256 tokenId) public$guards {
        address tokenOwner = ownerOf(tokenId);
        require(tokenOwner == from, "Wrong owner");
        require(to != address(0), "Invalid recipient");
        require(msg.sender == tokenOwner || getApproved[tokenId] == msg.sender || isApprovedForAll[tokenOwner][msg.sender], "Not authorized");
        delete getApproved[tokenId];
        balanceOf[from] -= 1;
        balanceOf[to] += 1;
        owners[tokenId] = to;
        emit Transfer(from, to, tokenId);
    }

    function tokenURI(uint256 tokenId) public view returns (string memory) {
        ownerOf(tokenId);
        return string(abi.encodePacked(baseTokenURI, _toString(tokenId)));
    }

    function transferOwnership(address newOwner) public onlyOwner {
        require(newOwner != address(0), "Invalid owner");
        emit OwnershipTransferred(owner, newOwner);
        owner = newOwner;
    }

    function _mintNext(address to) internal returns (uint256) {
        require(to != address(0), "Invalid recipient");
        uint256 tokenId = nextTokenId;
        nextTokenId += 1;
        owners[tokenId] = to;
        balanceOf[to] += 1;
        totalSupply += 1;
        emit Transfer(address(0), to, tokenId);
        return tokenId;
    }

    function _toString(uint256 value) internal pure returns (string memory) {
        if (value == 0) {
            return "0";
        }
        uint256 temp = value;
        uint256 digits;
        while (temp != 0) {
            digits++;
            temp /= 10;
        }
        bytes memory buffer = new bytes(digits);
        while (value != 0) {
            digits -= 1;
            buffer[digits] = bytes1(uint8(48 + uint256(value % 10)));
            value /= 10;
        }
        return string(buffer);
    }""")

_TOKEN_MINT = """\
    // Mint
    function mint(address to, uint256 amount) public onlyOwner {
        _mint(to, amount);
    }"""

_TOKEN_MINT_CAPPED = Template("""\
    // Mint
    uint256 public constant maxSupply = $max_supply;

    function mint(address to, uint256 amount) public onlyOwner {
        require(totalSupply + amount <= maxSupply, "Max supply exceeded");
        _mint(to, amount);
    }""")

_NFT_MINT = """\
    // Mint
    function mint(address to) public onlyOwner returns (uint256) {
        return _mintNext(to);
    }"""

_NFT_MINT_CAPPED = Template("""\
    // Mint
    uint256 public constant maxSupply = $max_supply;

    function mint(address to) public onlyOwner returns (uint256) {
        require(totalSupply < maxSupply, "Max supply exceeded");
        return _mintNext(to);
    }""")

_TOKEN_BURN = Template("""\
    // Burn
    function burn(uint256 amount) public$guards {
        require(balanceOf[msg.sender] >= amount, "Insufficient balance");
        balanceOf[msg.sender] -= amount;
        totalSupply -= amount;
        emit Transfer(msg.sender, address(0), amount);
    }""")

_NFT_BURN = Template("""\
    // Burn
    function burn(uint256 tokenId) public$guards {
        address tokenOwner = ownerOf(tokenId);
        require(msg.sender == tokenOwner || isApprovedForAll[tokenOwner][msg.sender], "Not authorized");
        delete getApproved[tokenId];
        delete owners[tokenId];
        balanceOf[tokenOwner] -= 1;
        totalSupply -= 1;
        emit Transfer(tokenOwner, address(0), tokenId);
    }""")

_TOKEN_TRANSFER = Template("""\
    // Batch transfer
    function batchTransfer(address[] calldata recipients, uint256[] calldata amounts) public$guards returns (bool) {
        require(recipients.length == amounts.length, "Length mismatch");
        for (uint256 i = 0; i < recipients.length; i++) {
            _transfer(msg.sender, recipients[i], amounts[i]);
        }
        return true;
    }""")

_NFT_TRANSFER = Template("""\
    // Batch transfer
    function batchTransfer(address to, uint256[] calldata tokenIds) public$guards {
        for (uint256 i = 0; i < tokenIds.length; i++) {
            transferFrom(msg.sender, to, tokenIds[i]);
        }
    }""")

_PAUSABLE = """\
    // Pausable
    bool public paused;

    event Paused(address account);
    event Unpaused(address account);

    modifier whenNotPaused() {
        require(!paused, "Paused");
        _;
    }

    function pause() public onlyOwner {
        require(!paused, "Already paused");
        paused = true;
        emit Paused(msg.sender);
    }

    function unpause() public onlyOwner {
        require(paused, "Not paused");
        paused = false;
        emit Unpaused(msg.sender);
    }"""

_TOKEN_STAKE = Template("""\
    // Staking
    uint256 public constant rewardRateBps = $reward_rate_bps;
    mapping(address => uint256) public stakedBalance;
    mapping(address => uint256) public stakedSince;

    event Staked(address indexed account, uint256 amount);
    event Unstaked(address indexed account, uint256 amount, uint256 reward);

    function stake(uint256 amount) public$guards {
        require(amount > 0, "Cannot stake 0");
        _transfer(msg.sender, address(this), amount);
        stakedBalance[msg.sender] += amount;
        stakedSince[msg.sender] = block.timestamp;
        emit Staked(msg.sender, amount);
    }

    function unstake(uint256 amount) public$guards {
        require(amount > 0, "Cannot unstake 0");
        require(stakedBalance[msg.sender] >= amount, "Insufficient stake");
        uint256 reward = pendingReward(msg.sender) * amount / stakedBalance[msg.sender];
        stakedBalance[msg.sender] -= amount;
        stakedSince[msg.sender] = block.timestamp;
        _transfer(address(this), msg.sender, amount);
        if (reward > 0) {
            _mint(msg.sender, reward);
        }
        emit Unstaked(msg.sender, amount, reward);
    }

    function pendingReward(address account) public view returns (uint256) {
        uint256 elapsed = block.timestamp - stakedSince[account];
        return stakedBalance[account] * rewardRateBps * elapsed / (10000 * 365 days);
    }""")

_WITHDRAW = """\
    // Withdraw
    event Withdrawn(address indexed to, uint256 amount);

    receive() external payable {}

    function withdraw() public onlyOwner {
        uint256 amount = address(this).balance;
        require(amount > 0, "Nothing to withdraw");
        payable(owner).transfer(amount);
        emit Withdrawn(owner, amount);
    }"""

_WHITELIST = """\
    // Whitelist
    mapping(address => bool) public whitelisted;

    event WhitelistUpdated(address indexed account, bool allowed);

    modifier onlyWhitelisted() {
        require(whitelisted[msg.sender], "Not whitelisted");
        _;
    }

    function addToWhitelist(address account) public onlyOwner {
        whitelisted[account] = true;
        emit WhitelistUpdated(account, true);
    }

    function removeFromWhitelist(address account) public onlyOwner {
        whitelisted[account] = false;
        emit WhitelistUpdated(account, false);
    }"""

_BLACKLIST = """\
    // Blacklist
    mapping(address => bool) public blacklisted;

    event BlacklistUpdated(address indexed account, bool blocked);

    modifier notBlacklisted() {
        require(!blacklisted[msg.sender], "Blacklisted");
        _;
    }

    function addToBlacklist(address account) public onlyOwner {
        blacklisted[account] = true;
        emit BlacklistUpdated(account, true);
    }

    function removeFromBlacklist(address account) public onlyOwner {
        blacklisted[account] = false;
        emit BlacklistUpdated(account, false);
    }"""

_STAKE_UNSUPPORTED = "    // Staking is only available for ERC20 token contracts"

# Modifiers that gate every transfer path, in the order they are applied.
_TRANSFER_GUARDS: tuple[tuple[type, str], ...] = (
  (PausableBlock, "whenNotPaused"),
  (BlacklistBlock, "notBlacklisted"),
  (WhitelistBlock, "onlyWhitelisted"),
)


def transfer_guards(features: Sequence[FeatureBlock]) -> str:
  """Return the modifier list for transfer paths, with a leading space when non-empty."""
  names = [modifier for block_type, modifier in _TRANSFER_GUARDS if any(isinstance(feature, block_type) for feature in features)]
  return "".join(f" {name}" for name in names)


def _render_base(base: BaseBlock, contract: str, guards: str) -> str:
  if isinstance(base, Erc20Block):
    config = base.config
    decimals = DEFAULT_SOLIDITY_DECIMALS if config.decimals is None else config.decimals
    initial_supply = DEFAULT_INITIAL_SUPPLY if config.initial_supply is None else config.initial_supply
    return _ERC20_BASE.substitute(contract=contract, name=contract, symbol=config.symbol or DEFAULT_TOKEN_SYMBOL, decimals=decimals, initial_supply=initial_supply, guards=guards)

  config = base.config
  return _NFT_BASE.substitute(contract=contract, name=contract, symbol=config.symbol or DEFAULT_NFT_SYMBOL, base_uri=config.base_uri or DEFAULT_BASE_URI, guards=guards)


def _render_feature(feature: FeatureBlock, *, is_token: bool, guards: str) -> str:
  match feature:
    case MintBlock():
      max_supply = feature.config.max_supply
      if is_token:
        return _TOKEN_MINT if max_supply is None else _TOKEN_MINT_CAPPED.substitute(max_supply=max_supply)
      return _NFT_MINT if max_supply is None else _NFT_MINT_CAPPED.substitute(max_supply=max_supply)
    case BurnBlock():
      return (_TOKEN_BURN if is_token else _NFT_BURN).substitute(guards=guards)
    case TransferBlock():
      return (_TOKEN_TRANSFER if is_token else _NFT_TRANSFER).substitute(guards=guards)
    case PausableBlock():
      return _PAUSABLE
    case StakeBlock():
      if not is_token:
        return _STAKE_UNSUPPORTED
      return _TOKEN_STAKE.substitute(reward_rate_bps=feature.config.reward_rate_bps, guards=guards)
    case WithdrawBlock():
      return _WITHDRAW
    case WhitelistBlock():
      return _WHITELIST
    case BlacklistBlock():
      return _BLACKLIST
    case _:
      assert_never(feature)


def render_solidity(base: BaseBlock, features: Sequence[FeatureBlock]) -> str:
  """Render a complete Solidity source file for one base block and its features."""
  contract = contract_name_for(base)
  is_token = isinstance(base, Erc20Block)
  guards = transfer_guards(features)
  sections = [_render_base(base, contract, guards)]
  sections.extend(_render_feature(feature, is_token=is_token, guards=guards) for feature in features)
  body = "\n\n".join(sections)
  return f"{LICENSE_HEADER}\n{PRAGMA}\n\n{body}\n}}\n"

