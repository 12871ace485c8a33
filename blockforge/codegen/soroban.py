"""Rust/Soroban emitter.

Each feature renders as its own ``#[contractimpl]`` block with module-level
storage keys, so fragments never depend on one another. Shared helpers
(``read_admin``, balance accessors) live in the base section.
"""

from __future__ import annotations

from collections.abc import Sequence
from string import Template
from typing import assert_never

from blockforge.blocks.models import (
  DEFAULT_BASE_URI,
  DEFAULT_INITIAL_SUPPLY,
  DEFAULT_NFT_SYMBOL,
  DEFAULT_SOROBAN_DECIMALS,
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
CRATE_HEADER = "#![no_std]\nuse soroban_sdk::{contract, contractimpl, symbol_short, Address, Env, String, Symbol};"

_TOKEN_BASE = Template("""\
const ADMIN: Symbol = symbol_short!("admin");
const SUPPLY: Symbol = symbol_short!("supply");
const BALANCE: Symbol = symbol_short!("balance");

fn read_admin(env: &Env) -> Address {
    env.storage().instance().get(&ADMIN).expect("not initialized")
}

fn read_supply(env: &Env) -> i128 {
    env.storage().instance().get(&SUPPLY).unwrap_or(0)
}

fn write_supply(env: &Env, amount: i128) {
    env.storage().instance().set(&SUPPLY, &amount);
}

fn read_balance(env: &Env, id: &Address) -> i128 {
    env.storage().persistent().get(&(BALANCE, id.clone())).unwrap_or(0)
}

fn write_balance(env: &Env, id: &Address, amount: i128) {
    env.storage().persistent().set(&(BALANCE, id.clone()), &amount);
}

fn move_balance(env: &Env, from: &Address, to: &Address, amount: i128) {
    if amount <= 0 {
        panic!("amount must be positive");
    }
    let from_balance = read_balance(env, from);
    if from_balance < amount {
        panic!("insufficient balance");
    }
    write_balance(env, from, from_balance - amount);
    write_balance(env, to, read_balance(env, to) + amount);
}

#[contract]
pub struct $contract;

#[contractimpl]
impl $contract {
    pub fn initialize(env: Env, admin: Address) {
        if env.storage().instance().has(&ADMIN) {
            panic!("already initialized");
        }
        env.storage().instance().set(&ADMIN, &admin);
        write_balance(&env, &admin, $initial_supply);
        write_supply(&env, $initial_supply);
    }

    pub fn name(env: Env) -> String {
        String::from_str(&env, "$name")
    }

    pub fn symbol(env: Env) -> String {
        String::from_str(&env, "$symbol")
    }

    pub fn decimals(_env: Env) -> u32 {
        $decimals
    }

    pub fn total_supply(env: Env) -> i128 {
        read_supply(&env)
    }

    pub fn balance(env: Env, id: Address) -> i128 {
        read_balance(&env, &id)
    }

    pub fn transfer(env: Env, from: Address, to: Address, amount: i128) {
        from.require_auth();
        move_balance(&env, &from, &to, amount);
    }

    pub fn set_admin(env: Env, new_admin: Address) {
        read_admin(&env).require_auth();
        env.storage().instance().set(&ADMIN, &new_admin);
    }
}""")

_NFT_BASE = Template("""\
const ADMIN: Symbol = symbol_short!("admin");
const SUPPLY: Symbol = symbol_short!("supply");
const NEXT_ID: Symbol = symbol_short!("next_id");
const OWNER: Symbol = symbol_short!("owner");
const BALANCE: Symbol = symbol_short!("balance");

fn read_admin(env: &Env) -> Address {
    env.storage().instance().get(&ADMIN).expect("not initialized")
}

fn read_supply(env: &Env) -> u64 {
    env.storage().instance().get(&SUPPLY).unwrap_or(0)
}

fn write_supply(env: &Env, amount: u64) {
    env.storage().instance().set(&SUPPLY, &amount);
}

fn read_balance(env: &Env, id: &Address) -> u64 {
    env.storage().persistent().get(&(BALANCE, id.clone())).unwrap_or(0)
}

fn write_balance(env: &Env, id: &Address, amount: u64) {
    env.storage().persistent().set(&(BALANCE, id.clone()), &amount);
}

fn require_owner(env: &Env, token_id: u64) -> Address {
    env.storage().persistent().get(&(OWNER, token_id)).expect("nonexistent token")
}

fn move_token(env: &Env, from: &Address, to: &Address, token_id: u64) {
    if require_owner(env, token_id) != *from {
        panic!("wrong owner");
    }
    env.storage().persistent().set(&(OWNER, token_id), to);
    write_balance(env, from, read_balance(env, from) - 1);
    write_balance(env, to, read_balance(env, to) + 1);
}

fn mint_next(env: &Env, to: &Address) -> u64 {
    let token_id: u64 = env.storage().instance().get(&NEXT_ID).unwrap_or(1);
    env.storage().instance().set(&NEXT_ID, &(token_id + 1));
    env.storage().persistent().set(&(OWNER, token_id), to);
    write_balance(env, to, read_balance(env, to) + 1);
    write_supply(env, read_supply(env) + 1);
    token_id
}

#[contract]
pub struct $contract;

#[contractimpl]
impl $contract {
    pub fn initialize(env: Env, admin: Address) {
        if env.storage().instance().has(&ADMIN) {
            panic!("already initialized");
        }
        env.storage().instance().set(&ADMIN, &admin);
    }

    pub fn name(env: Env) -> String {
        String::from_str(&env, "$name")
    }

    pub fn symbol(env: Env) -> String {
        String::from_str(&env, "$symbol")
    }

    pub fn base_uri(env: Env) -> String {
        String::from_str(&env, "$base_uri")
    }

    pub fn total_supply(env: Env) -> u64 {
        read_supply(&env)
    }

    pub fn owner_of(env: Env, token_id: u64) -> Address {
        require_owner(&env, token_id)
    }

    pub fn balance(env: Env, owner: Address) -> u64 {
        read_balance(&env, &owner)
    }

    pub fn transfer(env: Env, from: Address, to: Address, token_id: u64) {
        from.require_auth();
        move_token(&env, &from, &to, token_id);
    }

    pub fn set_admin(env: Env, new_admin: Address) {
        read_admin(&env).require_auth();
        env.storage().instance().set(&ADMIN, &new_admin);
    }
}""")

_TOKEN_MINT = Template("""\
$max_supply_const#[contractimpl]
impl $contract {
    pub fn mint(env: Env, to: Address, amount: i128) {
        read_admin(&env).require_auth();
        if amount <= 0 {
            panic!("amount must be positive");
        }
        let supply = read_supply(&env) + amount;
$max_supply_check        write_supply(&env, supply);
        write_balance(&env, &to, read_balance(&env, &to) + amount);
    }
}""")

_NFT_MINT = Template("""\
$max_supply_const#[contractimpl]
impl $contract {
    pub fn mint(env: Env, to: Address) -> u64 {
        read_admin(&env).require_auth();
$max_supply_check        mint_next(&env, &to)
    }
}""")

_TOKEN_BURN = Template("""\
#[contractimpl]
impl $contract {
    pub fn burn(env: Env, from: Address, amount: i128) {
        from.require_auth();
        let balance = read_balance(&env, &from);
        if amount <= 0 || balance < amount {
            panic!("invalid burn amount");
        }
        write_balance(&env, &from, balance - amount);
        write_supply(&env, read_supply(&env) - amount);
    }
}""")

_NFT_BURN = Template("""\
#[contractimpl]
impl $contract {
    pub fn burn(env: Env, owner: Address, token_id: u64) {
        owner.require_auth();
        if require_owner(&env, token_id) != owner {
            panic!("wrong owner");
        }
        env.storage().persistent().remove(&(OWNER, token_id));
        write_balance(&env, &owner, read_balance(&env, &owner) - 1);
        write_supply(&env, read_supply(&env) - 1);
    }
}""")

_TOKEN_TRANSFER = Template("""\
const ALLOWANCE: Symbol = symbol_short!("allow");

#[contractimpl]
impl $contract {
    pub fn approve(env: Env, from: Address, spender: Address, amount: i128) {
        from.require_auth();
        env.storage().persistent().set(&(ALLOWANCE, from, spender), &amount);
    }

    pub fn allowance(env: Env, from: Address, spender: Address) -> i128 {
        env.storage().persistent().get(&(ALLOWANCE, from, spender)).unwrap_or(0)
    }

    pub fn transfer_from(env: Env, spender: Address, from: Address, to: Address, amount: i128) {
        spender.require_auth();
        let key = (ALLOWANCE, from.clone(), spender.clone());
        let allowed: i128 = env.storage().persistent().get(&key).unwrap_or(0);
        if allowed < amount {
            panic!("insufficient allowance");
        }
        env.storage().persistent().set(&key, &(allowed - amount));
        move_balance(&env, &from, &to, amount);
    }
}""")

_NFT_TRANSFER = Template("""\
const APPROVED: Symbol = symbol_short!("approved");

#[contractimpl]
impl $contract {
    pub fn approve(env: Env, owner: Address, spender: Address, token_id: u64) {
        owner.require_auth();
        if require_owner(&env, token_id) != owner {
            panic!("wrong owner");
        }
        env.storage().persistent().set(&(APPROVED, token_id), &spender);
    }

    pub fn get_approved(env: Env, token_id: u64) -> Option<Address> {
        env.storage().persistent().get(&(APPROVED, token_id))
    }

    pub fn transfer_from(env: Env, spender: Address, from: Address, to: Address, token_id: u64) {
        spender.require_auth();
        let approved: Option<Address> = env.storage().persistent().get(&(APPROVED, token_id));
        if approved != Some(spender.clone()) && spender != from {
            panic!("not authorized");
        }
        env.storage().persistent().remove(&(APPROVED, token_id));
        move_token(&env, &from, &to, token_id);
    }
}""")

_PAUSABLE = Template("""\
const PAUSED: Symbol = symbol_short!("paused");

#[contractimpl]
impl $contract {
    pub fn pause(env: Env) {
        read_admin(&env).require_auth();
        env.storage().instance().set(&PAUSED, &true);
    }

    pub fn unpause(env: Env) {
        read_admin(&env).require_auth();
        env.storage().instance().set(&PAUSED, &false);
    }

    pub fn is_paused(env: Env) -> bool {
        env.storage().instance().get(&PAUSED).unwrap_or(false)
    }
}""")

_TOKEN_STAKE = Template("""\
const STAKE: Symbol = symbol_short!("stake");
const REWARD_RATE_BPS: i128 = $reward_rate_bps;

#[contractimpl]
impl $contract {
    pub fn stake(env: Env, staker: Address, amount: i128) {
        staker.require_auth();
        let vault = env.current_contract_address();
        move_balance(&env, &staker, &vault, amount);
        let key = (STAKE, staker.clone());
        let staked: i128 = env.storage().persistent().get(&key).unwrap_or(0);
        env.storage().persistent().set(&key, &(staked + amount));
    }

    pub fn unstake(env: Env, staker: Address, amount: i128) {
        staker.require_auth();
        let key = (STAKE, staker.clone());
        let staked: i128 = env.storage().persistent().get(&key).unwrap_or(0);
        if amount <= 0 || staked < amount {
            panic!("insufficient stake");
        }
        env.storage().persistent().set(&key, &(staked - amount));
        let vault = env.current_contract_address();
        move_balance(&env, &vault, &staker, amount);
        let reward = amount * REWARD_RATE_BPS / 10_000;
        if reward > 0 {
            write_balance(&env, &staker, read_balance(&env, &staker) + reward);
            write_supply(&env, read_supply(&env) + reward);
        }
    }

    pub fn staked(env: Env, staker: Address) -> i128 {
        env.storage().persistent().get(&(STAKE, staker)).unwrap_or(0)
    }
}""")

_TOKEN_WITHDRAW = Template("""\
#[contractimpl]
impl $contract {
    pub fn withdraw(env: Env, to: Address, amount: i128) {
        read_admin(&env).require_auth();
        let vault = env.current_contract_address();
        move_balance(&env, &vault, &to, amount);
    }
}""")

_WHITELIST = Template("""\
const WHITELIST: Symbol = symbol_short!("wlist");

#[contractimpl]
impl $contract {
    pub fn add_to_whitelist(env: Env, account: Address) {
        read_admin(&env).require_auth();
        env.storage().persistent().set(&(WHITELIST, account), &true);
    }

    pub fn remove_from_whitelist(env: Env, account: Address) {
        read_admin(&env).require_auth();
        env.storage().persistent().remove(&(WHITELIST, account));
    }

    pub fn is_whitelisted(env: Env, account: Address) -> bool {
        env.storage().persistent().get(&(WHITELIST, account)).unwrap_or(false)
    }
}""")

_BLACKLIST = Template("""\
const BLACKLIST: Symbol = symbol_short!("blist");

#[contractimpl]
impl $contract {
    pub fn add_to_blacklist(env: Env, account: Address) {
        read_admin(&env).require_auth();
        env.storage().persistent().set(&(BLACKLIST, account), &true);
    }

    pub fn remove_from_blacklist(env: Env, account: Address) {
        read_admin(&env).require_auth();
        env.storage().persistent().remove(&(BLACKLIST, account));
    }

    pub fn is_blacklisted(env: Env, account: Address) -> bool {
        env.storage().persistent().get(&(BLACKLIST, account)).unwrap_or(false)
    }
}""")


def _render_base(base: BaseBlock, contract: str) -> str:
  if isinstance(base, Erc20Block):
    config = base.config
    decimals = DEFAULT_SOROBAN_DECIMALS if config.decimals is None else config.decimals
    initial_supply = DEFAULT_INITIAL_SUPPLY if config.initial_supply is None else config.initial_supply
    # Soroban balances are stored in base units.
    return _TOKEN_BASE.substitute(contract=contract, name=contract, symbol=config.symbol or DEFAULT_TOKEN_SYMBOL, decimals=decimals, initial_supply=initial_supply * 10**decimals)

  config = base.config
  return _NFT_BASE.substitute(contract=contract, name=contract, symbol=config.symbol or DEFAULT_NFT_SYMBOL, base_uri=config.base_uri or DEFAULT_BASE_URI)


def _render_mint(feature: MintBlock, contract: str, *, is_token: bool) -> str:
  max_supply = feature.config.max_supply
  if max_supply is None:
    const, check = "", ""
  elif is_token:
    const = f"const MAX_SUPPLY: i128 = {max_supply};\n\n"
    check = '        if supply > MAX_SUPPLY {\n            panic!("max supply exceeded");\n        }\n'
  else:
    const = f"const MAX_SUPPLY: u64 = {max_supply};\n\n"
    check = '        if read_supply(&env) >= MAX_SUPPLY {\n            panic!("max supply exceeded");\n        }\n'
  template = _TOKEN_MINT if is_token else _NFT_MINT
  return template.substitute(contract=contract, max_supply_const=const, max_supply_check=check)


def _render_feature(feature: FeatureBlock, contract: str, *, is_token: bool) -> str:
  match feature:
    case MintBlock():
      return _render_mint(feature, contract, is_token=is_token)
    case BurnBlock():
      return (_TOKEN_BURN if is_token else _NFT_BURN).substitute(contract=contract)
    case TransferBlock():
      return (_TOKEN_TRANSFER if is_token else _NFT_TRANSFER).substitute(contract=contract)
    case PausableBlock():
      return _PAUSABLE.substitute(contract=contract)
    case StakeBlock():
      if not is_token:
        return "// Staking is only available for token contracts"
      return _TOKEN_STAKE.substitute(contract=contract, reward_rate_bps=feature.config.reward_rate_bps)
    case WithdrawBlock():
      if not is_token:
        return "// Withdraw is only available for token contracts"
      return _TOKEN_WITHDRAW.substitute(contract=contract)
    case WhitelistBlock():
      return _WHITELIST.substitute(contract=contract)
    case BlacklistBlock():
      return _BLACKLIST.substitute(contract=contract)
    case _:
      assert_never(feature)


def render_soroban(base: BaseBlock, features: Sequence[FeatureBlock]) -> str:
  """Render a complete Soroban ``lib.rs`` for one base block and its features."""
  contract = contract_name_for(base)
  is_token = isinstance(base, Erc20Block)
  sections = [_render_base(base, contract)]
  sections.extend(_render_feature(feature, contract, is_token=is_token) for feature in features)
  body = "\n\n".join(sections)
  return f"{LICENSE_HEADER}\n{CRATE_HEADER}\n\n{body}\n"
